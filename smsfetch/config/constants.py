"""Configuration constants for the SMS fetcher."""

# Built-in defaults, lowest precedence layer.
# Paths keep their "~/" prefix here and are expanded during merging.
DEFAULT_SETTINGS = {
    "config_path": "~/.config/VoIPms/VoIPms.json",
    "username": None,
    "password": None,
    "did": None,
    "lockfile_path": "~/.config/VoIPms/latest",
    "inbound_handler": "echo",
    "outbound_handler": "echo",
    "new_only": False,
    "print_mode": False,
    "latest_watermark": None,
    "direction_filter": None,
}

REQUIRED_SETTINGS = ("did", "username", "password")

# Fields holding filesystem paths, always made absolute
PATH_SETTINGS = ("config_path", "lockfile_path")

# Fields holding commands; only "~/" and "./" are expanded
COMMAND_SETTINGS = ("inbound_handler", "outbound_handler")

DIRECTIONS = {"in": "inbound", "out": "outbound"}

VOIPMS_API_ORIGIN = "https://voip.ms/api/v1/rest.php"
REQUEST_TIMEOUT_SEC = 30.0
