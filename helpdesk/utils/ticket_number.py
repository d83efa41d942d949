"""Human-facing ticket numbers: ``TKT-<year>-<4 digits>``."""

import re
import secrets
from datetime import datetime, timezone
from typing import Optional

TICKET_NUMBER_RE = re.compile(r"^TKT-(\d{4})-(\d{4})$")


def generate_ticket_number(year: Optional[int] = None) -> str:
    """Return a candidate number; uniqueness is checked by the registry."""
    year = year or datetime.now(timezone.utc).year
    return f"TKT-{year}-{secrets.randbelow(10000):04d}"


def is_valid_ticket_number(value: str) -> bool:
    return bool(TICKET_NUMBER_RE.match(value or ""))
