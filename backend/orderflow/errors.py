"""Domain errors raised by the order core.

Each error is a Werkzeug HTTPException so the app-wide handler renders it with the
standard error shape; ``kind`` lets displays tell "order not found" apart from
"invalid status value" without parsing the message.
"""
from __future__ import annotations
from werkzeug.exceptions import HTTPException


class OrderError(HTTPException):
    code = 400
    kind = 'OrderError'

    def __init__(self, description: str | None = None):
        super().__init__(description=description)


class NotFound(OrderError):
    code = 404
    kind = 'NotFound'


class Unavailable(OrderError):
    code = 400
    kind = 'Unavailable'


class InvalidStatus(OrderError):
    code = 400
    kind = 'InvalidStatus'


class ValidationFailed(OrderError):
    code = 400
    kind = 'ValidationFailed'


class Conflict(OrderError):
    code = 409
    kind = 'Conflict'


__all__ = ['OrderError', 'NotFound', 'Unavailable', 'InvalidStatus', 'ValidationFailed', 'Conflict']
