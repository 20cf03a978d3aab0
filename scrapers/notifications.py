"""Scraper run alerts to Discord and Slack webhooks.

Delivery is best effort: every channel is sent concurrently and a failure
on one never affects another or the caller.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence

import httpx
from pydantic import BaseModel, Field

from scrapers.config import Settings

log = logging.getLogger(__name__)

WEBHOOK_TIMEOUT = 10.0


class Severity(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    severity: Severity
    title: str
    message: str
    details: dict[str, str | int] = Field(default_factory=dict)


class WebhookChannel(abc.ABC):
    """One outbound webhook."""

    def __init__(self, url: str) -> None:
        self.url = url

    @abc.abstractmethod
    def payload(self, notification: Notification) -> dict:
        """Provider-specific JSON body."""

    async def send(self, notification: Notification, client: httpx.AsyncClient) -> bool:
        name = type(self).__name__
        try:
            resp = await client.post(self.url, json=self.payload(notification), timeout=WEBHOOK_TIMEOUT)
        except httpx.HTTPError as exc:
            log.error("%s notification failed: %s", name, exc)
            return False
        if not resp.is_success:
            log.error("%s notification failed: HTTP %s", name, resp.status_code)
            return False
        return True


class DiscordWebhook(WebhookChannel):
    COLORS = {
        Severity.SUCCESS: 0x22C55E,
        Severity.WARNING: 0xEAB308,
        Severity.ERROR: 0xEF4444,
    }

    def payload(self, notification: Notification) -> dict:
        embed = {
            "title": notification.title,
            "description": notification.message,
            "color": self.COLORS[notification.severity],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "footer": {"text": "Nyack Today Scraper"},
        }
        if notification.details:
            embed["fields"] = [
                {"name": name, "value": str(value), "inline": True}
                for name, value in notification.details.items()
            ]
        return {"embeds": [embed]}


class SlackWebhook(WebhookChannel):
    EMOJI = {
        Severity.SUCCESS: ":white_check_mark:",
        Severity.WARNING: ":warning:",
        Severity.ERROR: ":x:",
    }

    def payload(self, notification: Notification) -> dict:
        blocks: list[dict] = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{self.EMOJI[notification.severity]} {notification.title}",
                },
            },
            {"type": "section", "text": {"type": "mrkdwn", "text": notification.message}},
        ]
        if notification.details:
            text = " | ".join(f"*{key}:* {value}" for key, value in notification.details.items())
            blocks.append({"type": "context", "elements": [{"type": "mrkdwn", "text": text}]})
        return {"blocks": blocks}


class Notifier:
    """Fans a notification out to every configured channel."""

    def __init__(
        self,
        channels: Sequence[WebhookChannel] = (),
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.channels = list(channels)
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> Notifier:
        channels: list[WebhookChannel] = []
        if settings.discord_webhook_url:
            channels.append(DiscordWebhook(settings.discord_webhook_url))
        if settings.slack_webhook_url:
            channels.append(SlackWebhook(settings.slack_webhook_url))
        return cls(channels, client=client)

    async def send(self, notification: Notification) -> list[bool]:
        if not self.channels:
            log.info("[notification] %s: %s", notification.severity.value.upper(), notification.title)
            log.info("  %s", notification.message)
            if notification.details:
                log.info("  details: %s", notification.details)
            return []

        client = self._client or httpx.AsyncClient()
        try:
            results = await asyncio.gather(
                *(channel.send(notification, client) for channel in self.channels),
                return_exceptions=True,
            )
        finally:
            if client is not self._client:
                await client.aclose()

        delivered = []
        for channel, result in zip(self.channels, results):
            if isinstance(result, BaseException):
                log.error("%s notification raised: %r", type(channel).__name__, result)
                delivered.append(False)
            else:
                delivered.append(result)
        return delivered

    async def notify_scraper_complete(
        self,
        total_found: int,
        total_added: int,
        total_updated: int,
        failed_sources: Sequence[str],
    ) -> list[bool]:
        details: dict[str, str | int] = {
            "Events Found": total_found,
            "Events Added": total_added,
            "Events Updated": total_updated,
        }
        if failed_sources:
            details["Failed Scrapers"] = len(failed_sources)
            notification = Notification(
                severity=Severity.WARNING,
                title="Scraper Run Completed with Errors",
                message=f"Some scrapers failed: {', '.join(failed_sources)}",
                details=details,
            )
        else:
            notification = Notification(
                severity=Severity.SUCCESS,
                title="Scraper Run Completed",
                message="All scrapers completed successfully",
                details=details,
            )
        return await self.send(notification)

    async def notify_scraper_error(self, error: str) -> list[bool]:
        return await self.send(
            Notification(
                severity=Severity.ERROR,
                title="Scraper Critical Error",
                message=f"The scraper job failed with an error: {error}",
            )
        )
