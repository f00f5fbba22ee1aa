import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_string(v: str) -> str:
    if not isinstance(v, str):
        return v
    # 1. Drop control characters (Postgres rejects NUL in text columns)
    v = _CONTROL_CHARS.sub("", v)
    # 2. Trim whitespace
    return v.strip()


def sanitize_optional(v: str | None) -> str | None:
    """Like ``sanitize_string`` but collapses blank text to ``None``."""
    if v is None:
        return None
    v = sanitize_string(v)
    if isinstance(v, str) and not v:
        return None
    return v
