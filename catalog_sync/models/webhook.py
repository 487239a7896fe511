"""Schemas for WhatsApp Business platform callbacks.

Containers keep their children as raw dicts so each status and message can be
validated on its own; one malformed item never hides its siblings.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow")


class StatusError(_Lenient):
    code: int | str | None = None
    title: str | None = None
    message: str | None = None


class StatusUpdate(_Lenient):
    id: str
    status: str
    timestamp: int
    recipient_id: str | None = None
    errors: list[StatusError] = Field(default_factory=list)


class InboundMessage(_Lenient):
    id: str | None = None
    from_: str | None = Field(None, alias="from")
    type: str | None = None
    timestamp: int | None = None


class ChangeValue(_Lenient):
    statuses: list[Any] = Field(default_factory=list)
    messages: list[Any] = Field(default_factory=list)


class Change(_Lenient):
    field: str
    value: ChangeValue = Field(default_factory=ChangeValue)


class Entry(_Lenient):
    id: str | None = None
    changes: list[Any] = Field(default_factory=list)


class WebhookEnvelope(_Lenient):
    object: str
    entry: list[Any] = Field(default_factory=list)


class WebhookProcessingSummary(BaseModel):
    statuses_applied: int = 0
    statuses_ignored: int = 0
    statuses_failed: int = 0
    messages_recorded: int = 0
    items_skipped: int = 0
