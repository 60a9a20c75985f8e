"""Layered settings resolution.

Three sources are overlaid, lowest precedence first: the built-in defaults,
the JSON config file, and command-line overrides. A key set in a higher layer
replaces the lower value outright.
"""

from __future__ import annotations

import argparse
import json
import os
from typing import Any, Dict, List, Optional, Sequence

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError
from pydantic import AliasChoices
from pydantic import ValidationError as ModelValidationError

from smsfetch.config.constants import (
    COMMAND_SETTINGS,
    DEFAULT_SETTINGS,
    PATH_SETTINGS,
    REQUIRED_SETTINGS,
)
from smsfetch.errors import ConfigurationError
from smsfetch.models import Settings, SettingsLayer
from smsfetch.utils import get_logger, load_file

logger = get_logger(__name__)

SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schemas", "config.schema.json")

DESCRIPTION = """\
VoIP.ms SMS Fetch

Unless overridden, settings are collected from {config}.

Collected messages are either handed one at a time to a command, invoked as
    <command> "<JSON string>"
or printed to stdout as a single JSON array with --print.

Settings other than --config may also be defined in the JSON config file;
command-line values take precedence over it.
"""


# ---------- Path helpers ----------

def normalize_path(value: str, cwd: Optional[str] = None) -> str:
    """Make a filesystem path absolute ("~/", "./" and bare relative forms)."""
    cwd = cwd or os.getcwd()
    if value.startswith("~/"):
        return os.path.join(os.path.expanduser("~"), value[2:])
    if value.startswith("./"):
        return os.path.join(cwd, value[2:])
    if not value.startswith("/"):
        return os.path.join(cwd, value)
    return value


def normalize_command(value: str, cwd: Optional[str] = None) -> str:
    """Expand "~/" and "./" only; bare names stay resolvable through PATH."""
    cwd = cwd or os.getcwd()
    if value.startswith("~/"):
        return os.path.join(os.path.expanduser("~"), value[2:])
    if value.startswith("./"):
        return os.path.join(cwd, value[2:])
    return value


# ---------- Command line ----------

class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise ConfigurationError(f"Invalid arguments: {message}")


class _EqualsHelpFormatter(argparse.RawDescriptionHelpFormatter):
    def _format_action_invocation(self, action):
        if action.option_strings and action.nargs != 0:
            default = self._get_default_metavar_for_optional(action)
            return f"{action.option_strings[0]}={self._format_args(action, default)}"
        return super()._format_action_invocation(action)


class _StoreOnce(argparse.Action):
    """Store a value option, refusing a second occurrence."""

    def __call__(self, parser, namespace, values, option_string=None):
        if getattr(namespace, self.dest) is not None:
            name = (option_string or self.dest).lstrip("-")
            raise ConfigurationError(f'Multiple "{name}" arguments were provided', field=self.dest, value=values)
        setattr(namespace, self.dest, values)


class _HelpAction(argparse.Action):
    def __init__(self, option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, help=None, **kwargs):
        super().__init__(option_strings=option_strings, dest=dest, default=default, nargs=0, help=help, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        parser.exit(1)


def build_parser() -> argparse.ArgumentParser:
    defaults = DEFAULT_SETTINGS
    parser = _ArgumentParser(
        prog="voipms-sms-fetch",
        usage="%(prog)s [--print | --inbound=<command> --outbound=<command>] [options]",
        description=DESCRIPTION.format(config=defaults["config_path"]),
        formatter_class=_EqualsHelpFormatter,
        allow_abbrev=False,
        add_help=False,
    )
    parser.add_argument("--help", action=_HelpAction, help="Show this message and exit with status 1.")

    handling = parser.add_argument_group("message handling")
    handling.add_argument("--inbound", dest="inbound_handler", metavar="<command>", action=_StoreOnce,
                          help=f"Command to process each inbound message. default: {defaults['inbound_handler']}")
    handling.add_argument("--outbound", dest="outbound_handler", metavar="<command>", action=_StoreOnce,
                          help=f"Command to process each outbound message. default: {defaults['outbound_handler']}")
    handling.add_argument("--print", dest="print_mode", action="store_true", default=None,
                          help="Print all messages to stdout as one JSON array.")

    account = parser.add_argument_group("settings (also read from the config file)")
    account.add_argument("--config", dest="config_path", metavar="<path>", action=_StoreOnce,
                         help=f"Location of the JSON config file. default: {defaults['config_path']}")
    account.add_argument("--username", dest="username", metavar="<username>", action=_StoreOnce,
                         help="VoIP.ms API username (an email address). Required.")
    account.add_argument("--password", dest="password", metavar="<password>", action=_StoreOnce,
                         help="VoIP.ms API password. Required.")
    account.add_argument("--did", dest="did", metavar="<did>", action=_StoreOnce,
                         help="DID number to fetch, 10 digits. Required.")
    account.add_argument("--lockfile", dest="lockfile_path", metavar="<path>", action=_StoreOnce,
                         help=f"Tracks the most recent message id fetched. default: {defaults['lockfile_path']}")

    run = parser.add_argument_group("run options")
    run.add_argument("--new_only", dest="new_only", action="store_true", default=None,
                     help="Skip messages at or below the stored message id.")
    run.add_argument("--latest", dest="latest_watermark", metavar="<msg_id>", action=_StoreOnce,
                     help="Override the lock file value used to define old messages.")
    run.add_argument("--direction", dest="direction_filter", metavar="{in|out}", action=_StoreOnce,
                     help="Restrict processing to inbound or outbound messages.")
    return parser


def _field_name(key: str) -> str:
    for name, info in SettingsLayer.model_fields.items():
        alias = info.validation_alias
        if key == name or (isinstance(alias, AliasChoices) and key in alias.choices):
            return name
    return key


def _layer(data: Dict[str, Any], source: str) -> SettingsLayer:
    try:
        return SettingsLayer.model_validate(data)
    except ModelValidationError as e:
        err = e.errors()[0]
        field = _field_name(str(err["loc"][0])) if err.get("loc") else None
        raise ConfigurationError(
            f'Invalid value for {field} in {source}: "{err.get("input")}". {err["msg"]}',
            field=field,
            value=err.get("input"),
        ) from e


def parse_overrides(argv: Sequence[str]) -> SettingsLayer:
    """Collect command-line overrides into a settings layer."""
    for token in argv:
        if token == "--" or not token.startswith("--"):
            raise ConfigurationError(f'Invalid argument: "{token}"', value=token)

    parser = build_parser()
    namespace, extras = parser.parse_known_args(list(argv))
    if extras:
        raise ConfigurationError(f'Invalid argument: "{extras[0]}"', value=extras[0])

    values = {k: v for k, v in vars(namespace).items() if v is not None}

    if values.get("print_mode") and ("inbound_handler" in values or "outbound_handler" in values):
        raise ConfigurationError('"--print" conflicts with "--outbound" and "--inbound"', field="print_mode", value=True)

    return _layer(values, "command line")


# ---------- Config file ----------

def _validate_config_document(doc: Any, path: str) -> None:
    schema = json.loads(load_file(SCHEMA_PATH))
    try:
        Draft202012Validator(schema).validate(doc)
    except ValidationError as e:
        raise ConfigurationError(
            f'Config validation error in "{path}": {e.message} at {list(e.path)}',
            field=".".join(str(p) for p in e.path) or None,
            value=e.instance,
        ) from e


def load_config_file(path: str) -> SettingsLayer:
    """Read the JSON config file into a layer; a missing file yields an empty layer."""
    if not (os.path.isfile(path) and os.access(path, os.R_OK)):
        logger.warning('Cannot read config file "%s". Attempting to complete with commandline arguments only.', path)
        return SettingsLayer()

    try:
        doc = json.loads(load_file(path))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigurationError(f'Config file "{path}" is not valid JSON: {e}', field="config_path", value=path) from e

    _validate_config_document(doc, path)
    logger.info("config loaded path=%s keys=%s", path, sorted(doc))
    return _layer(doc, f'config file "{path}"')


# ---------- Merge ----------

def overlay_layers(*layers: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay whole values, later layers winning."""
    merged: Dict[str, Any] = {}
    for layer in layers:
        merged.update(layer)
    return merged


def merge_settings(argv: Sequence[str], cwd: Optional[str] = None) -> Settings:
    """Resolve defaults, config file and command-line overrides into Settings."""
    overrides = parse_overrides(argv)
    cli_values = overrides.overlay()

    config_path = normalize_path(cli_values.get("config_path") or DEFAULT_SETTINGS["config_path"], cwd)
    file_values = load_config_file(config_path).overlay()

    merged = overlay_layers(DEFAULT_SETTINGS, file_values, cli_values)
    merged["config_path"] = config_path

    for key in PATH_SETTINGS:
        merged[key] = normalize_path(merged[key], cwd)
    for key in COMMAND_SETTINGS:
        merged[key] = normalize_command(merged[key], cwd)

    missing: List[str] = [key for key in REQUIRED_SETTINGS if merged.get(key) is None]
    if missing:
        raise ConfigurationError(f'Missing necessary setting: "{missing[0]}"', field=missing[0])

    try:
        settings = Settings(**merged)
    except ModelValidationError as e:
        err = e.errors()[0]
        field = str(err["loc"][0]) if err.get("loc") else None
        raise ConfigurationError(f'Invalid value for {field}: "{err.get("input")}"', field=field, value=err.get("input")) from e

    logger.info(
        "settings resolved did=%s lockfile=%s print=%s new_only=%s direction=%s",
        settings.did,
        settings.lockfile_path,
        settings.print_mode,
        settings.new_only,
        settings.direction_filter or "both",
    )
    return settings
