from .errors import SlotError, ValidationError, NotFound, Conflict, Expired, InvalidToken
