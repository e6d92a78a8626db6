"""Mask sensitive values in audit payloads (changes, metadata) before they are stored."""

from typing import Any, Iterable, Optional

DEFAULT_REPLACEMENT = "***REDACTED***"


def _normalize(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


class SensitiveFieldRedactor:
    """
    Replace values of configured keys at any nesting depth.
    Key matching ignores case, underscores and dashes (password_hash == passwordHash).
    Inputs are never mutated; redacted copies are returned.
    """

    def __init__(self, fields: Iterable[str], replacement: str = DEFAULT_REPLACEMENT) -> None:
        self._fields = frozenset(_normalize(f) for f in fields)
        self._replacement = replacement

    def is_sensitive(self, key: Any) -> bool:
        return isinstance(key, str) and _normalize(key) in self._fields

    def redact(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                k: self._replacement if self.is_sensitive(k) else self.redact(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.redact(v) for v in value]
        return value

    def redact_optional(self, value: Optional[dict]) -> Optional[dict]:
        if value is None:
            return None
        return self.redact(value)
