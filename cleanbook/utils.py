"""Shared utilities used across the booking flow."""

import time
import uuid


def new_token(prefix: str) -> str:
    """Build a unique, time-ordered token such as ``item_1718000000000_3f2a9c1be``.

    Examples:
        >>> new_token("session").startswith("session_")
        True
    """
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)
