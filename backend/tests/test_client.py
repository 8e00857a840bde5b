import pytest

from typerace.client.api import RaceApiClient
from typerace.client.session import Phase, RoomSession
from typerace.client.transport import RoomSubscription
from typerace.errors import Conflict, FailedPrecondition, NotFound
from typerace.realtime import events

BASE_URL = 'http://race.test'


class FlaskResponse:
    def __init__(self, response):
        self.status_code = response.status_code
        self._body = response.get_json(silent=True)

    def json(self):
        if self._body is None:
            raise ValueError('no json body')
        return self._body


class FlaskSession:
    """requests.Session look-alike that routes into the Flask test client."""

    def __init__(self, client):
        self.client = client

    def request(self, method, url, json=None, headers=None, timeout=None):
        path = url[len(BASE_URL):]
        return FlaskResponse(self.client.open(path, method=method, json=json, headers=headers))


class Loop:
    """Runs dispatched commands and delivered events when the test says so."""

    def __init__(self):
        self.queue = []

    def dispatch(self, fn, *args):
        self.queue.append((fn, args))

    def run(self):
        while self.queue:
            fn, args = self.queue.pop(0)
            fn(*args)


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def api(client):
    return RaceApiClient(BASE_URL, session=FlaskSession(client))


def _session(api, broadcaster, loop, clock, room_id, player_id):
    sess = RoomSession(api, room_id, player_id, clock=clock, dispatch=loop.dispatch)
    broadcaster.subscribe(events.room_channel(room_id), lambda e, p: loop.dispatch(sess.apply, e, p))
    sess.load()
    return sess


def test_api_client_maps_errors(api):
    with pytest.raises(NotFound):
        api.get_room('ZZZZZZ')

    room_id = api.create_room('alice', 'Alice')['roomId']
    with pytest.raises(FailedPrecondition):
        api.start_game(room_id, 'alice')

    api.join_room(room_id, 'bob', 'Bob')
    with pytest.raises(Conflict) as info:
        api.join_room(room_id, 'carol', 'Carol')
    assert info.value.message == 'Room is full'


def test_api_client_queries(api):
    room_id = api.create_room('alice', 'Alice')['roomId']
    assert api.get_room(room_id)['createdBy'] == 'alice'
    assert api.get_stats('alice')['onlinePlayers'] == 1
    result = api.save_practice_result(40, 95.0, 12.0, 'cat dog', player_id='alice')
    assert result['playerId'] == 'alice'


def test_two_sessions_race_to_a_rematch(api, broadcaster):
    loop = Loop()
    clock = FakeClock(50.0)

    room_id = api.create_room('alice', 'Alice')['roomId']
    alice = _session(api, broadcaster, loop, clock, room_id, 'alice')
    api.join_room(room_id, 'bob', 'Bob')
    bob = _session(api, broadcaster, loop, clock, room_id, 'bob')
    loop.run()
    assert set(alice.players) == {'alice', 'bob'}

    alice.start()
    loop.run()
    assert alice.phase == Phase.RACING
    assert bob.phase == Phase.RACING

    clock.now += 3
    for value in ('c', 'ca', 'cat', 'cat ', 'cat d', 'cat do', 'cat dog'):
        bob.type(value)
    loop.run()

    assert bob.phase == Phase.FINISHED
    assert alice.phase == Phase.RACING
    assert alice.players['bob']['completed'] is True

    clock.now += 3
    for value in ('c', 'ca', 'cat', 'cat ', 'cat d', 'cat do', 'cat dog'):
        alice.type(value)
    loop.run()

    assert alice.phase == Phase.FINISHED
    assert api.get_room(room_id)['status'] == 'COMPLETED'
    assert alice.last_seq == bob.last_seq

    bob.request_new_game()
    loop.run()
    assert alice.next_room_id is not None
    assert alice.next_room_id == bob.next_room_id
    assert api.get_room(alice.next_room_id)['parentRoomId'] == room_id


class FakeSocketClient:
    def __init__(self):
        self.handlers = {}
        self.emitted = []
        self.connected = False
        self.url = None

    def on(self, event, handler, namespace=None):
        self.handlers[(namespace, event)] = handler

    def emit(self, event, data=None, namespace=None):
        self.emitted.append((event, data, namespace))

    def connect(self, url, namespaces=None):
        self.url = url
        self.connected = True
        self.handlers[(namespaces[0], 'connect')]()

    def disconnect(self):
        self.connected = False


class RecordingSession:
    room_id = 'ROOM01'
    player_id = 'alice'

    def __init__(self):
        self.applied = []
        self.refreshes = 0

    def apply(self, event, payload):
        self.applied.append((event, payload))

    def refresh(self):
        self.refreshes += 1


def test_subscription_forwards_events_and_refetches_on_connect():
    socket = FakeSocketClient()
    session = RecordingSession()
    subscription = RoomSubscription('http://race.test', session, client=socket)

    subscription.open()
    assert socket.emitted == [('subscribe', {'roomId': 'ROOM01', 'playerId': 'alice'}, '/ws')]
    assert session.refreshes == 1

    socket.handlers[('/ws', events.GAME_START)]({'roomId': 'ROOM01', 'seq': 4})
    socket.handlers[('/ws', events.TYPING_UPDATE)]()
    assert session.applied == [
        (events.GAME_START, {'roomId': 'ROOM01', 'seq': 4}),
        (events.TYPING_UPDATE, {}),
    ]

    # A reconnect subscribes again and refetches whatever was missed
    socket.handlers[('/ws', 'connect')]()
    assert session.refreshes == 2

    subscription.close()
    assert socket.emitted[-1] == ('unsubscribe', {'roomId': 'ROOM01'}, '/ws')
    assert socket.connected is False
