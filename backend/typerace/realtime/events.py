"""Wire contract shared by the server and every room client."""

NAMESPACE = '/ws'

PLAYER_JOINED = 'player-joined'
PLAYER_LEFT = 'player-left'
COUNTDOWN_START = 'countdown-start'
GAME_START = 'game-start'
TYPING_UPDATE = 'typing-update'
GAME_COMPLETE = 'game-complete'
NEW_GAME_CREATED = 'new-game-created'

ALL_EVENTS = (
    PLAYER_JOINED,
    PLAYER_LEFT,
    COUNTDOWN_START,
    GAME_START,
    TYPING_UPDATE,
    GAME_COMPLETE,
    NEW_GAME_CREATED,
)


def room_channel(room_id: str) -> str:
    return f"room-{room_id}"


def player_channel(player_id: str) -> str:
    # Reserved; nothing publishes here yet
    return f"player-{player_id}"
