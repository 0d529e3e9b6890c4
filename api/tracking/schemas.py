"""
Request bodies for page-event and feedback capture.

Fields are optional at the schema level; the service reports missing values
with its own messages.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class EventRequest(BaseModel):
    event: str | None = Field(default=None, max_length=200)
    session_id: str | None = Field(default=None, max_length=200)
    props: dict[str, Any] | None = None


class FeedbackRequest(BaseModel):
    # 'waitlist' | 'feedback' | 'report'
    kind: str | None = Field(default="feedback", max_length=50)
    email: str | None = Field(default=None, max_length=320)
    message: str | None = Field(default=None, max_length=5000)
    page: str | None = Field(default=None, max_length=500)
    ca: str | None = Field(default=None, max_length=200)
    session_id: str | None = Field(default=None, max_length=200)
