"""
FeedParser — decodes a feed body into NotificationRecords.

Wire format:
    { "notifications": [
        { "title": "...", "message": "...",
          "bigText": "...", "channelId": "...", "imageUrl": "..." }
    ] }

An empty body, a missing "notifications" key, or an empty array all mean
"nothing pending". A body that does not decode is turned into a single
diagnostic record (policy "diagnostic") or raised as ParseError
(policy "strict").
"""

from __future__ import annotations

import json
import logging
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from notification_master.core.errors import ParseError
from notification_master.core.types import FeedResponse, NotificationRecord
from notification_master.delivery.channels import HIGH_PRIORITY_CHANNEL_ID

logger = logging.getLogger(__name__)

DIAGNOSTIC_TITLE = "Feed Error"
DIAGNOSTIC_MESSAGE = "Received response but couldn't parse it"
DIAGNOSTIC_CHANNEL = HIGH_PRIORITY_CHANNEL_ID


class FeedEntry(BaseModel):
    """One element of the "notifications" array."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    message: str
    big_text: str | None = Field(default=None, alias="bigText")
    channel_id: str | None = Field(default=None, alias="channelId")
    image_url: str | None = Field(default=None, alias="imageUrl")

    def to_record(self) -> NotificationRecord:
        return NotificationRecord(
            title=self.title,
            message=self.message,
            expanded_text=self.big_text or None,
            channel_hint=self.channel_id or None,
            image_url=self.image_url or None,
        )


class FeedPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    notifications: list[FeedEntry] | None = None


class FeedParser:
    """
    Usage:
        parser = FeedParser(policy="diagnostic", body_limit=200)
        feed = parser.parse(body)
        for record in feed.records: ...
    """

    def __init__(
        self,
        policy: Literal["diagnostic", "strict"] = "diagnostic",
        body_limit: int = 200,
    ) -> None:
        self._policy = policy
        self._body_limit = body_limit

    @property
    def policy(self) -> str:
        return self._policy

    def parse(self, body: bytes | str | None) -> FeedResponse:
        if body is None:
            return FeedResponse()
        text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
        if not text.strip():
            logger.debug("Empty response body")
            return FeedResponse()

        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            payload = FeedPayload.model_validate(data)
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            return self._on_failure(text, e)

        records = [entry.to_record() for entry in payload.notifications or []]
        if not records:
            logger.debug("No notifications found in response")
        return FeedResponse(records=records)

    def _on_failure(self, text: str, error: Exception) -> FeedResponse:
        preview = text[: self._body_limit]
        logger.error(f"Failed to parse notification response: {error}")
        if self._policy == "strict":
            raise ParseError(
                f"Failed to parse notification response: {error}",
                body_preview=preview,
            ) from error

        suffix = "..." if len(text) > self._body_limit else ""
        record = NotificationRecord(
            title=DIAGNOSTIC_TITLE,
            message=DIAGNOSTIC_MESSAGE,
            expanded_text=f"Response body: {preview}{suffix}\n\nError: {error}",
            channel_hint=DIAGNOSTIC_CHANNEL,
        )
        return FeedResponse(records=[record], diagnostic=True)
