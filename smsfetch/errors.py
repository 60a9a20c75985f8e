"""Error kinds raised across the fetcher.

Each error carries the offending field and value when there is one, so the
orchestrator can print a single diagnostic line.
"""

from __future__ import annotations

from typing import Any, Optional


class SmsFetchError(Exception):
    """Base class for every failure the fetcher reports."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class ConfigurationError(SmsFetchError):
    """Bad, duplicate or unknown argument, invalid setting, or conflicting options."""


class FilesystemError(SmsFetchError):
    """Lock file directory not writable, or existing lock file not readable."""


class TransportError(SmsFetchError):
    """The VoIP.ms API could not be reached or returned an unusable body."""


class RemoteServiceError(SmsFetchError):
    """The VoIP.ms API answered with a non-success status."""

    def __init__(self, status: str, reason: str):
        super().__init__(f"Failed: {reason}", field="status", value=status)
        self.status = status
        self.reason = reason


class HandlerInvocationError(SmsFetchError):
    """A handler process failed to launch or exited non-zero."""

    def __init__(self, command: str, returncode: int):
        super().__init__(f"Handler \"{command}\" exited with status {returncode}", field="handler", value=command)
        self.command = command
        self.returncode = returncode
