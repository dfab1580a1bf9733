"""Short-lived opaque tokens for unauthenticated document links.

A token is ``<issued_at_epoch_ms>_<random hex>``. It is not bound to a
document; holding any unexpired token grants the public read route.
"""

import secrets
import time

ACCESS_TOKEN_WINDOW_SECONDS = 1800
CLOCK_SKEW_SECONDS = 60


def issue_access_token(now: float | None = None) -> str:
    issued_ms = int((time.time() if now is None else now) * 1000)
    return f"{issued_ms}_{secrets.token_hex(4)}"


def validate_access_token(token: str, now: float | None = None) -> bool:
    """Check shape and age; returns False instead of raising."""
    parts = token.split("_")
    if len(parts) != 2:
        return False
    issued, suffix = parts
    if not issued.isdigit() or not suffix:
        return False

    current_ms = (time.time() if now is None else now) * 1000
    age_ms = current_ms - int(issued)
    if age_ms > ACCESS_TOKEN_WINDOW_SECONDS * 1000:
        return False
    if age_ms < -CLOCK_SKEW_SECONDS * 1000:
        return False
    return True
