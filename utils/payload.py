from slots.errors import ValidationError


def json_flag(data: dict, key: str, default=None):
    """A JSON boolean from the request body; strings like "false" are rejected."""
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{key} must be true or false")
