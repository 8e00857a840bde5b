"""Typed failures raised by the race commands.

Every error carries the HTTP status it maps to and a short machine readable
code, so the HTTP layer and the command client agree on one taxonomy.
"""


class RaceError(Exception):
    status_code = 400
    code = 'race_error'
    default_message = 'Request could not be completed'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class InvalidRequest(RaceError):
    status_code = 400
    code = 'invalid_request'
    default_message = 'Invalid request'


class NotFound(RaceError):
    status_code = 404
    code = 'not_found'
    default_message = 'Not found'


class Forbidden(RaceError):
    status_code = 403
    code = 'forbidden'
    default_message = 'Not allowed'


class Conflict(RaceError):
    status_code = 409
    code = 'conflict'
    default_message = 'Conflict'


class FailedPrecondition(RaceError):
    status_code = 412
    code = 'failed_precondition'
    default_message = 'Precondition failed'


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (InvalidRequest, NotFound, Forbidden, Conflict, FailedPrecondition)
}


def error_from_response(status_code, body):
    """Rebuild the typed error from an HTTP error response body."""
    body = body or {}
    cls = ERRORS_BY_CODE.get(body.get('code'))
    if cls is None:
        cls = next(
            (c for c in ERRORS_BY_CODE.values() if c.status_code == status_code),
            RaceError,
        )
    return cls(body.get('error'))
