"""
Column types shared by the helpdesk models.

IntBoolean stores two-valued flags as INTEGER 0/1 on every backend. SQLite
has no native boolean, and a flag that leaks through as a raw string or int
is read as truthy by careless call sites, so the conversion lives here and
nowhere else. Every boolean column in the schema must use this type.
"""

from sqlalchemy import Integer
from sqlalchemy.types import TypeDecorator


class IntBoolean(TypeDecorator):
    """Boolean persisted as integer 0/1, read back as a real ``bool``."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        # bool is a subclass of int, so check it first
        if isinstance(value, bool):
            return 1 if value else 0
        if isinstance(value, int) and value in (0, 1):
            return value
        raise ValueError(
            f"IntBoolean accepts only True/False or 0/1, got {value!r}"
        )

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Unexpected stored flag value {value!r}")
