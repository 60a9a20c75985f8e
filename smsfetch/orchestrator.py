import sys
import uuid
from typing import Optional, Sequence, TextIO

from smsfetch.engine import run_fetch
from smsfetch.errors import ConfigurationError, FilesystemError, TransportError
from smsfetch.handlers import SubprocessHandler
from smsfetch.settings import merge_settings
from smsfetch.sources.voipms_adapter import VoIPmsClient
from smsfetch.utils import get_logger, redact_secrets
from smsfetch.validator import validate_settings
from smsfetch.watermark import WatermarkStore

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_FILESYSTEM = 3
EXIT_TRANSPORT = 4


def _execute(argv: Sequence[str], out: Optional[TextIO]) -> None:
    """Merge, validate, fetch, dispatch and store the new watermark."""
    settings = merge_settings(argv)
    store = WatermarkStore(settings.lockfile_path)
    settings = validate_settings(settings, store)

    client = VoIPmsClient(settings.username, settings.password)
    inbound = outbound = None
    if not settings.print_mode:
        inbound = SubprocessHandler(settings.inbound_handler)
        outbound = SubprocessHandler(settings.outbound_handler)

    result = run_fetch(settings, client, store, inbound=inbound, outbound=outbound, out=out)
    if result.ok:
        logger.info("OK: %d of %d messages dispatched.", result.dispatched, result.fetched)


def run_once(argv: Optional[Sequence[str]] = None, out: Optional[TextIO] = None) -> int:
    """Execute one fetch run and return the process exit status.

    ``--help`` prints usage and raises ``SystemExit(1)`` directly.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    run_id = uuid.uuid4().hex[:8]
    logger.info("=== run start id=%s ===", run_id)

    try:
        _execute(argv, out)
    except ConfigurationError as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    except FilesystemError as e:
        logger.error("%s", e)
        return EXIT_FILESYSTEM
    except TransportError as e:
        logger.error("%s", redact_secrets(str(e)))
        return EXIT_TRANSPORT
    finally:
        logger.info("=== run end id=%s ===", run_id)
    return EXIT_OK
