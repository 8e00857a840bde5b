"""Race domain services: metrics, the room store, passages, the countdown
scheduler and the room state machine.

Transport concerns (HTTP blueprints, Socket.IO handlers) stay outside this
package and call into ``race.RaceService``.
"""
