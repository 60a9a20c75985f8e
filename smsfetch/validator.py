"""Ordered checks run on resolved settings before any network call.

The first failing check raises; nothing durable is touched here.
"""

from __future__ import annotations

import os
import re
import shutil
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from smsfetch.config.constants import DIRECTIONS
from smsfetch.errors import ConfigurationError, FilesystemError
from smsfetch.models import Settings
from smsfetch.utils import get_logger
from smsfetch.watermark import WatermarkStore

logger = get_logger(__name__)

_DID = re.compile(r"^[0-9]{10}$")


def check_username(username: str) -> None:
    # VoIP.ms usernames are the account email address
    try:
        validate_email(username, check_deliverability=False)
    except EmailNotValidError as e:
        raise ConfigurationError(f'Invalid email address: "{username}"', field="username", value=username) from e


def check_did(did: str) -> None:
    if not _DID.match(did):
        raise ConfigurationError(f'Invalid did: "{did}". Must be 10 numerals, no punctuation.', field="did", value=did)


def is_executable(command: str) -> bool:
    return bool(command) and shutil.which(command) is not None


def check_handlers(settings: Settings) -> None:
    if settings.print_mode:
        return
    for field, label in (("inbound_handler", "Inbound"), ("outbound_handler", "Outbound")):
        command = getattr(settings, field)
        if not is_executable(command):
            raise ConfigurationError(
                f'{label} command "{command}" either does not exist or is not executable.',
                field=field,
                value=command,
            )


def check_lockfile(store: WatermarkStore) -> None:
    if not store.directory_writable():
        raise FilesystemError(
            f'"{store.path}" is not in a writable directory. Must be able to store the most recent ID collected here.',
            field="lockfile_path",
            value=store.path,
        )
    if os.path.exists(store.path) and not os.access(store.path, os.R_OK):
        raise FilesystemError(f'Lock file "{store.path}" exists but is not readable.', field="lockfile_path", value=store.path)


def check_direction(direction: Optional[str]) -> None:
    if direction is not None and direction not in DIRECTIONS:
        raise ConfigurationError(
            f'Invalid direction setting: "{direction}". Must be "in" or "out". Leave undefined for both.',
            field="direction_filter",
            value=direction,
        )


def validate_settings(settings: Settings, store: Optional[WatermarkStore] = None) -> Settings:
    """Run every check in order and return settings with the watermark resolved."""
    store = store or WatermarkStore(settings.lockfile_path)

    check_username(settings.username)
    check_did(settings.did)
    check_handlers(settings)
    check_lockfile(store)

    latest = settings.latest_watermark
    if latest is None:
        latest = store.read()
    else:
        logger.info("watermark override value=%d", latest)

    check_direction(settings.direction_filter)

    return settings.model_copy(update={"latest_watermark": latest})
