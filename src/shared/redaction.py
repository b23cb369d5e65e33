"""Credential redaction for logged payloads.

Every payload that reaches a log sink passes through ``redact`` first,
so tokens, secrets and authorization headers never leave the process
in clear text.
"""

from typing import Any

REDACTED = "[REDACTED]"

# Matched as substrings of the normalised key (lower case, no "_" or "-")
SENSITIVE_KEYS = (
    "token",
    "password",
    "secret",
    "apikey",
    "authorization",
    "cookie",
    "credential",
    "codeverifier",
)


# One-time secrets logged as a short prefix; matched on the whole normalised key
TRUNCATED_KEYS = ("code",)


def _normalise(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def is_sensitive(key: Any) -> bool:
    """Return True if a mapping key names a credential."""
    if not isinstance(key, str):
        return False
    normalised = _normalise(key)
    return any(marker in normalised for marker in SENSITIVE_KEYS)


def _redact_item(key: Any, item: Any) -> Any:
    if is_sensitive(key):
        return REDACTED
    if isinstance(key, str) and isinstance(item, str) and _normalise(key) in TRUNCATED_KEYS:
        return truncate_secret(item)
    return redact(item)


def redact(value: Any) -> Any:
    """
    Return a deep copy of ``value`` with sensitive keys masked.

    Dicts are walked at any depth, including dicts nested in lists and
    tuples. Authorization codes keep only a short prefix. Other
    non-container leaves are returned as-is. Redacting an
    already-redacted payload yields an equal payload.
    """
    if isinstance(value, dict):
        return {key: _redact_item(key, item) for key, item in value.items()}
    if isinstance(value, list):
        return [redact(item) for item in value]
    if isinstance(value, tuple):
        return tuple(redact(item) for item in value)
    return value


def truncate_secret(value: str | None, keep: int = 10) -> str:
    """Shorten a one-time secret (e.g. an authorization code) for logging."""
    if not value:
        return ""
    if value.endswith("...") and len(value) <= keep + 3:
        return value
    return f"{value[:keep]}..."
