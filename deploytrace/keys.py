import uuid

ROW_KEY_LENGTH = 12


def new_row_key() -> str:
    """Return a 12-character opaque alphanumeric row key."""
    return uuid.uuid4().hex[:ROW_KEY_LENGTH]
