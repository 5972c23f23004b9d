"""Session identifier generation and format checks."""

import re
import secrets
import string

SESSION_ID_ALPHABET = string.ascii_letters + string.digits + "-_"
SESSION_ID_MIN_LENGTH = 10

_SESSION_ID_RE = re.compile(r"[A-Za-z0-9_-]{%d,}" % SESSION_ID_MIN_LENGTH)


def generate_session_id(length: int = SESSION_ID_MIN_LENGTH) -> str:
    """Return a random URL-safe id (~6 bits of entropy per character)."""
    if length < SESSION_ID_MIN_LENGTH:
        raise ValueError(f"session id length must be >= {SESSION_ID_MIN_LENGTH}")
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(length))


def is_valid_session_id(session_id: str) -> bool:
    return _SESSION_ID_RE.fullmatch(session_id) is not None
