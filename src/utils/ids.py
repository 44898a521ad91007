"""Record identifiers."""

from ulid import ULID


def new_id() -> str:
    """Generate a text-based record ID."""
    return str(ULID())
