"""
Error taxonomy of the reservation core.

Every error carries the HTTP status it maps to; the app-level error handler
renders them as {"error": message, ...extra}. Conflict, Expired and
InvalidToken are expected outcomes of the hold/confirm protocol and are never
retried here.
"""


class SlotError(Exception):
    status_code = 400
    default_message = "Slot request failed"

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self):
        payload = {"error": self.message}
        payload.update(self.extra)
        return payload


class ValidationError(SlotError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(SlotError):
    status_code = 404
    default_message = "Time slot not found"


class Conflict(SlotError):
    status_code = 409
    default_message = "Time slot is not available"


class Expired(SlotError):
    status_code = 410
    default_message = "Hold expired, please retry"


class InvalidToken(SlotError):
    status_code = 422
    default_message = "Lock token does not match the current hold"
