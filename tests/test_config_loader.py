import os
import pytest
from unittest.mock import patch


BASE_ENV = {
    "YTAPIKEY": "env-key",
    "YTCHANNELID": "UCenv",
}


@pytest.fixture
def store(tmp_path):
    from config_loader import PropertyStore
    return PropertyStore(tmp_path / "ytwee" / "properties")


def test_load_config_returns_all_keys(store):
    """Config loader returns dict with all expected keys."""
    with patch.dict(os.environ, BASE_ENV, clear=True):
        from config_loader import load_config
        config = load_config(store)
        assert config["api_key"] == "env-key"
        assert config["channel_id"] == "UCenv"
        assert config["next_page"] == ""
        assert config["chat_id"] == ""


def test_load_config_defaults(store):
    """Config loader provides sensible defaults for optional fields."""
    with patch.dict(os.environ, BASE_ENV, clear=True):
        from config_loader import load_config
        config = load_config(store)
        assert config["message_format"] == "{author} {text}"
        assert config["debug_mode"] is False
        assert config["timeout"] == 10


def test_load_config_missing_api_key_raises(store):
    """Config loader raises ValueError when no API key is configured."""
    with patch.dict(os.environ, {}, clear=True):
        from config_loader import load_config
        with pytest.raises(ValueError, match="YTAPIKEY"):
            load_config(store)


def test_load_config_reads_properties(store):
    """Persisted properties are used when the environment is silent."""
    store.set("yt-api-key", "prop-key")
    store.set("yt-channel-id", "UCprop")
    store.set("yt-chat-next-page", "tok1")
    store.set("yt-chat-id", "chat123")

    with patch.dict(os.environ, {}, clear=True):
        from config_loader import load_config
        config = load_config(store)
        assert config["api_key"] == "prop-key"
        assert config["channel_id"] == "UCprop"
        assert config["next_page"] == "tok1"
        assert config["chat_id"] == "chat123"


def test_load_config_env_overrides_properties(store):
    """Environment variables win over persisted properties."""
    store.set("yt-api-key", "prop-key")
    store.set("yt-channel-id", "UCprop")

    with patch.dict(os.environ, BASE_ENV, clear=True):
        from config_loader import load_config
        config = load_config(store)
        assert config["api_key"] == "env-key"
        assert config["channel_id"] == "UCenv"


def test_load_config_bool_parsing(store):
    """Config loader parses boolean strings correctly."""
    env = {**BASE_ENV, "YTWEE_DEBUG": "yes"}
    with patch.dict(os.environ, env, clear=True):
        from config_loader import load_config
        config = load_config(store)
        assert config["debug_mode"] is True


def test_property_store_creates_file_on_set(store):
    """Setting a property creates the directory and file."""
    assert store.all() == {}
    store.set("yt-channel-id", "UCabc")
    assert store.path.is_file()
    assert store.get("yt-channel-id") == "UCabc"


def test_property_store_overwrites_and_keeps_other_keys(store):
    """Overwriting one key leaves the others alone."""
    store.set("yt-channel-id", "UCabc")
    store.set("yt-chat-next-page", "tok1")
    store.set("yt-chat-next-page", "tok2")

    assert store.all() == {"yt-channel-id": "UCabc", "yt-chat-next-page": "tok2"}


def test_property_store_empty_value(store):
    """An empty cursor is stored and read back as an empty string."""
    store.set("yt-chat-next-page", "")
    assert store.get("yt-chat-next-page", "missing") == ""


def test_default_properties_path_uses_xdg(tmp_path):
    """The properties file lives under XDG_CONFIG_HOME by default."""
    with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}, clear=True):
        from config_loader import default_properties_path
        assert default_properties_path() == tmp_path / "ytwee" / "properties"


def test_default_properties_path_override(tmp_path):
    """YTWEE_PROPERTIES points the store at an explicit file."""
    target = tmp_path / "custom.properties"
    with patch.dict(os.environ, {"YTWEE_PROPERTIES": str(target)}, clear=True):
        from config_loader import default_properties_path
        assert default_properties_path() == target


def test_load_config_custom_message_format(store):
    """A format using only message fields is accepted."""
    env = {**BASE_ENV, "YTWEE_MESSAGE_FORMAT": "[{time}] <{author}> {text} ({id})"}
    with patch.dict(os.environ, env, clear=True):
        from config_loader import load_config
        config = load_config(store)
        assert config["message_format"] == "[{time}] <{author}> {text} ({id})"


@pytest.mark.parametrize("fmt", ["{author}: {message}", "{0} {text}", "{author.name}"])
def test_load_config_bad_message_format_raises(store, fmt):
    """Formats referencing unknown fields fail as configuration errors."""
    env = {**BASE_ENV, "YTWEE_MESSAGE_FORMAT": fmt}
    with patch.dict(os.environ, env, clear=True):
        from config_loader import load_config
        with pytest.raises(ValueError, match="YTWEE_MESSAGE_FORMAT"):
            load_config(store)
