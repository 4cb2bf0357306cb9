"""Structured status events and their delivery (Telegram, webhooks)."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Iterable, List

import aiohttp
from pydantic import BaseModel, Field

from flasharb.common import metrics

log = logging.getLogger(__name__)


class EventKind(str, Enum):
    STARTUP = "startup"
    STARTUP_COMPLETE = "startup_complete"
    FUNDING = "funding"
    OPPORTUNITY = "opportunity"
    EXECUTING = "executing"
    TX_SENT = "tx_sent"
    TRADE_PROFIT = "trade_profit"
    TRADE_FAILED = "trade_failed"
    TRADE_CONFIRMED = "trade_confirmed"
    CYCLE_ERROR = "cycle_error"
    WARNING = "warning"
    FATAL = "fatal"
    STOPPED = "stopped"


_ERROR_KINDS = {EventKind.CYCLE_ERROR, EventKind.TRADE_FAILED, EventKind.WARNING}


class BotEvent(BaseModel):
    kind: EventKind
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp_ms: int = Field(default_factory=lambda: int(time.time() * 1000))


def format_event(event: BotEvent) -> str:
    """Human-readable one-liner for chat sinks."""
    return f"[{event.kind.value.upper()}] {event.message}"


Sink = Callable[[BotEvent], Awaitable[None]]


class Notifier:
    def __init__(self, sinks: Iterable[Sink] | None = None, *, recent_limit: int = 50) -> None:
        self.sinks: List[Sink] = list(sinks or [])
        self.recent: Deque[BotEvent] = deque(maxlen=recent_limit)

    async def emit(self, kind: EventKind, message: str, **data: Any) -> BotEvent:
        event = BotEvent(kind=kind, message=message, data=data)
        self.recent.append(event)
        if kind == EventKind.FATAL:
            log.error("%s", format_event(event))
        elif kind in _ERROR_KINDS:
            log.warning("%s", format_event(event))
        else:
            log.info("%s", format_event(event))
        if self.sinks:
            results = await asyncio.gather(*(sink(event) for sink in self.sinks), return_exceptions=True)
            for sink, result in zip(self.sinks, results):
                if isinstance(result, Exception):
                    name = getattr(sink, "name", type(sink).__name__)
                    metrics.NOTIFY_ERRORS.labels(sink=name).inc()
                    log.warning("Notification via %s failed: %s", name, result)
        return event


async def _post(session: aiohttp.ClientSession, url: str, payload: dict) -> None:
    async with session.post(url, json=payload, timeout=aiohttp.ClientTimeout(total=5)) as resp:
        if resp.status >= 300:
            raise RuntimeError(f"{url} answered {resp.status}")


class TelegramSink:
    name = "telegram"

    def __init__(self, bot_token: str, chat_id: str, *, api_base: str = "https://api.telegram.org") -> None:
        self.url = f"{api_base}/bot{bot_token}/sendMessage"
        self.chat_id = chat_id

    async def __call__(self, event: BotEvent) -> None:
        async with aiohttp.ClientSession() as session:
            await _post(session, self.url, {"chat_id": self.chat_id, "text": format_event(event)})


class WebhookSink:
    name = "webhook"

    def __init__(self, urls: Iterable[str]) -> None:
        self.urls = list(urls)

    async def __call__(self, event: BotEvent) -> None:
        payload = {"text": format_event(event), **event.model_dump(mode="json")}
        async with aiohttp.ClientSession() as session:
            results = await asyncio.gather(*(_post(session, url, payload) for url in self.urls), return_exceptions=True)
        errors = [r for r in results if isinstance(r, Exception)]
        if errors:
            raise errors[0]


__all__ = ["EventKind", "BotEvent", "format_event", "Notifier", "TelegramSink", "WebhookSink", "Sink"]
