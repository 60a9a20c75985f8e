"""Fetch, filter and dispatch one batch of messages, then advance the watermark."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, TextIO

from smsfetch.config.constants import DIRECTIONS
from smsfetch.errors import HandlerInvocationError, RemoteServiceError
from smsfetch.handlers import Handler, PrintCollector
from smsfetch.models import Message, Settings
from smsfetch.utils import get_logger
from smsfetch.watermark import WatermarkStore

logger = get_logger(__name__)


class MessageSource(Protocol):
    def get_sms(self, did: str) -> List[Message]:
        ...


@dataclass
class RunResult:
    status: str = "success"
    fetched: int = 0
    dispatched: int = 0
    skipped_stale: int = 0
    skipped_direction: int = 0
    handler_failures: List[HandlerInvocationError] = field(default_factory=list)
    watermark_before: int = 0
    watermark_after: int = 0
    watermark_written: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "success"


def run_fetch(
    settings: Settings,
    client: MessageSource,
    store: WatermarkStore,
    inbound: Optional[Handler] = None,
    outbound: Optional[Handler] = None,
    out: Optional[TextIO] = None,
) -> RunResult:
    """Make one getSMS call and route every returned message.

    Messages arrive unsorted. The watermark candidate is the highest id that
    was dispatched (or collected in print mode); stale and filtered messages
    never raise it. The lock file is written at most once, after the whole
    batch, and only when the candidate exceeds the starting watermark.
    """

    if not settings.print_mode and (inbound is None or outbound is None):
        raise ValueError("inbound and outbound handlers are required unless print_mode is set")

    watermark = settings.latest_watermark or 0
    result = RunResult(watermark_before=watermark, watermark_after=watermark)

    try:
        messages = client.get_sms(settings.did)
    except RemoteServiceError as e:
        logger.error("Failed: %s", e.reason)
        result.status = e.status
        return result

    collector = PrintCollector() if settings.print_mode else None
    wanted = DIRECTIONS.get(settings.direction_filter) if settings.direction_filter else None
    candidate = 0

    for message in messages:
        result.fetched += 1
        if settings.new_only and message.id <= watermark:
            result.skipped_stale += 1
            continue
        if wanted and message.direction != wanted:
            result.skipped_direction += 1
            continue

        if collector is not None:
            collector.append(message.to_payload())
        else:
            handler = inbound if message.direction == "inbound" else outbound
            returncode = handler.invoke(message.to_json())
            if returncode != 0:
                failure = HandlerInvocationError(getattr(handler, "command", repr(handler)), returncode)
                result.handler_failures.append(failure)
                logger.warning("%s for message id=%d, continuing", failure, message.id)

        result.dispatched += 1
        candidate = max(candidate, message.id)

    if collector is not None:
        stream = out or sys.stdout
        stream.write(collector.render() + "\n")
        stream.flush()

    if candidate > watermark:
        store.write(candidate)
        result.watermark_after = candidate
        result.watermark_written = True

    logger.info(
        "dispatch done fetched=%d dispatched=%d stale=%d filtered=%d handler_failures=%d watermark=%d->%d",
        result.fetched,
        result.dispatched,
        result.skipped_stale,
        result.skipped_direction,
        len(result.handler_failures),
        result.watermark_before,
        result.watermark_after,
    )
    return result
