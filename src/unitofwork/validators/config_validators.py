def to_uppercase(value: str | None) -> str | None:
    """
    Converts a string to uppercase if it's not None.
    """
    if value is None:
        return None
    return value.upper()


def to_lowercase(value: str | None) -> str | None:
    if value is None:
        return None
    return value.lower()


def blank_to_none(value: str | None) -> str | None:
    """
    Treat empty or whitespace-only environment values as unset.
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value
