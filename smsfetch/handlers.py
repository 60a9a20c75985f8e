"""Message handlers.

The engine only depends on ``Handler.invoke``; tests substitute recording
doubles for the subprocess-backed handler.
"""

from __future__ import annotations

import json
import subprocess
from typing import List, Protocol

LAUNCH_FAILED = 127


class Handler(Protocol):
    """Receives one canonical message JSON string per dispatched message."""

    def invoke(self, payload: str) -> int:
        ...


class SubprocessHandler:
    """Run ``<command> <payload>`` and wait for it to exit."""

    def __init__(self, command: str):
        self.command = command

    def invoke(self, payload: str) -> int:
        try:
            completed = subprocess.run([self.command, payload], shell=False, check=False)
        except OSError:
            return LAUNCH_FAILED
        return completed.returncode

    def __repr__(self) -> str:
        return f"SubprocessHandler({self.command!r})"


class PrintCollector:
    """Ordered buffer of payloads emitted as one JSON array."""

    def __init__(self):
        self.payloads: List[dict] = []

    def append(self, payload: dict) -> None:
        self.payloads.append(payload)

    def __len__(self) -> int:
        return len(self.payloads)

    def render(self) -> str:
        return json.dumps(self.payloads, ensure_ascii=False, separators=(",", ":"))
