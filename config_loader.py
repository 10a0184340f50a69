"""Load relay configuration from the environment and the properties file."""

import os
from pathlib import Path

from dotenv import dotenv_values, load_dotenv, set_key


CHANNEL_ID = "yt-channel-id"
API_KEY = "yt-api-key"
NEXT_PAGE = "yt-chat-next-page"
CHAT_ID = "yt-chat-id"

# Fields a message format may reference
MESSAGE_FIELDS = {"id": "", "author": "", "text": "", "time": ""}

# Environment variables that override persisted properties
ENV_BINDINGS = {
    CHANNEL_ID: "YTCHANNELID",
    API_KEY: "YTAPIKEY",
}


def _parse_bool(value):
    """Parse a string to boolean."""
    return value.lower() in ("true", "1", "yes")


def default_properties_path():
    override = os.environ.get("YTWEE_PROPERTIES")
    if override:
        return Path(override).expanduser()
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "ytwee" / "properties"


class PropertyStore:
    """Persisted key/value properties, one ``key='value'`` per line.

    The file is re-read on every ``get`` and written through on every
    ``set``; there is no locking between processes.
    """

    def __init__(self, path=None):
        self.path = Path(path) if path else default_properties_path()

    def all(self):
        if not self.path.is_file():
            return {}
        return {k: v or "" for k, v in dotenv_values(str(self.path)).items()}

    def get(self, key, default=""):
        return self.all().get(key, default)

    def set(self, key, value):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)
        set_key(str(self.path), key, value or "")


def load_config(store):
    """
    Load configuration from environment variables and persisted properties.

    Environment variables win over the properties file.

    Returns:
        dict with all config values

    Raises:
        ValueError if no API key is configured
    """
    load_dotenv()

    props = store.all()

    def _lookup(key):
        env_name = ENV_BINDINGS.get(key)
        if env_name and os.environ.get(env_name):
            return os.environ[env_name]
        return props.get(key, "")

    api_key = _lookup(API_KEY)
    if not api_key:
        raise ValueError(
            f"Missing required setting: {ENV_BINDINGS[API_KEY]}\n"
            f"Export {ENV_BINDINGS[API_KEY]} or add {API_KEY} to {store.path}."
        )

    message_format = os.environ.get("YTWEE_MESSAGE_FORMAT", "{author} {text}")
    try:
        message_format.format(**MESSAGE_FIELDS)
    except (KeyError, IndexError, AttributeError, ValueError) as e:
        raise ValueError(
            f"Invalid YTWEE_MESSAGE_FORMAT {message_format!r}: {e!r}\n"
            f"Available fields: {', '.join('{' + k + '}' for k in MESSAGE_FIELDS)}"
        ) from e

    return {
        "channel_id": _lookup(CHANNEL_ID),
        "api_key": api_key,
        "next_page": props.get(NEXT_PAGE, ""),
        "chat_id": props.get(CHAT_ID, ""),
        "message_format": message_format,
        "debug_mode": _parse_bool(os.environ.get("YTWEE_DEBUG", "false")),
        "timeout": float(os.environ.get("YTWEE_TIMEOUT", "10")),
    }
