import re
import uuid

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def issue() -> str:
    return uuid.uuid4().hex


def is_well_formed(identifier: str) -> bool:
    """True when the identifier is safe to use as a storage key / file name."""
    return bool(identifier) and bool(_IDENTIFIER_RE.match(identifier))
