"""Lock file holding the highest dispatched message id."""

from __future__ import annotations

import os

from smsfetch.errors import ConfigurationError, FilesystemError
from smsfetch.utils import get_logger, load_file, write_file

logger = get_logger(__name__)


class WatermarkStore:
    """Reads and writes a single unsigned integer from a lock file.

    There is no locking between concurrent runs against the same file; two
    overlapping runs may each dispatch the same messages and the later write
    wins.
    """

    def __init__(self, path: str):
        self.path = path

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path) or "."

    def directory_writable(self) -> bool:
        return os.path.isdir(self.directory) and os.access(self.directory, os.W_OK)

    def read(self) -> int:
        if os.path.exists(self.path):
            if not self.directory_writable():
                raise FilesystemError(
                    f'File "{self.path}" cannot be written to in order to update latest fetched message.',
                    field="lockfile_path",
                    value=self.path,
                )
            try:
                raw = load_file(self.path)
            except OSError as e:
                raise FilesystemError(f'Cannot read lock file "{self.path}": {e}', field="lockfile_path", value=self.path) from e
            except UnicodeDecodeError as e:
                raise ConfigurationError(
                    f'Invalid value for latest: lock file "{self.path}" is not text.',
                    field="latest_watermark",
                    value=self.path,
                ) from e
            text = raw.strip()
            if not text.isdigit() or not text.isascii():
                raise ConfigurationError(
                    f'Invalid value for latest: "{text}". Must be a single integer. '
                    f'If not defined as an argument, this value comes from "{self.path}".',
                    field="latest_watermark",
                    value=text,
                )
            value = int(text)
            logger.info("watermark read path=%s value=%d", self.path, value)
            return value

        if self.directory_writable():
            logger.info("watermark file absent path=%s, starting from 0", self.path)
            return 0

        raise FilesystemError(
            f'"{self.path}" is not in a writable directory. Must be able to store the most recent ID collected here.',
            field="lockfile_path",
            value=self.path,
        )

    def write(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"watermark must be non-negative, got {value}")
        try:
            write_file(self.path, str(int(value)))
        except OSError as e:
            raise FilesystemError(f'Cannot write lock file "{self.path}": {e}', field="lockfile_path", value=self.path) from e
        logger.info("watermark written path=%s value=%d", self.path, value)
