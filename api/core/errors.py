"""
API failure envelope.

Every handler reports failures as `{"ok": false, "error", "details", "stage"}`.
Raise `ApiError` (or a subclass) anywhere in a request; `main.py` renders it.
"""

from __future__ import annotations

import json
from typing import Any

DEFAULT_DETAILS_CHARS = 500


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        error: str,
        *,
        details: Any = None,
        stage: str | None = None,
        max_details_chars: int = DEFAULT_DETAILS_CHARS,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = truncate_details(details, max_details_chars)
        self.stage = stage

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"ok": False, "error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        if self.stage is not None:
            payload["stage"] = self.stage
        return payload


class ConfigError(ApiError):
    """
    Missing store credentials or endpoint. Not recoverable within a request.
    """

    def __init__(self, error: str, *, details: Any = None) -> None:
        super().__init__(500, error, details=details, stage="env")


def truncate_details(details: Any, max_chars: int = DEFAULT_DETAILS_CHARS) -> Any:
    """
    Bound a diagnostic payload.

    Strings are cut to `max_chars`. Small structured payloads (flags, counts)
    pass through; if their JSON form is too long they are serialized and cut.
    """
    if details is None:
        return None
    if isinstance(details, str):
        return details[:max_chars]
    try:
        text = json.dumps(details, default=str)
    except (TypeError, ValueError):
        return str(details)[:max_chars]
    if len(text) <= max_chars:
        return json.loads(text)
    return text[:max_chars]
