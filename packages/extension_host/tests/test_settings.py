import pytest

from extension_host.config import Settings, load_settings


def test_load_settings_defaults() -> None:
    settings = load_settings()
    assert settings.system_path
    assert settings.settle_delay_ms == 600
    assert settings.settle_delay == pytest.approx(0.6)
    assert settings.state_file is None
    assert settings.raycast_version == "1.80.0"
    assert "/opt/homebrew/bin" in settings.common_bin_dirs


def test_load_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXTENSION_HOST_HOME", "/Users/ci")
    monkeypatch.setenv("EXTENSION_HOST_SETTLE_DELAY_MS", "50")
    monkeypatch.setenv("EXTENSION_HOST_COMMON_BIN_DIRS", "/a/bin:/b/bin")
    monkeypatch.setenv("EXTENSION_HOST_LOG_LEVEL", "debug")
    monkeypatch.setenv("EXTENSION_HOST_STATE_FILE", "/tmp/state.json")

    settings = load_settings()

    assert settings.home_dir == "/Users/ci"
    assert settings.settle_delay_ms == 50
    assert settings.common_bin_dirs == ["/a/bin", "/b/bin"]
    assert settings.log_level == "DEBUG"
    assert settings.state_file == "/tmp/state.json"


def test_invalid_integer_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXTENSION_HOST_STORE_QUOTA_BYTES", "lots")

    with pytest.raises(ValueError, match="EXTENSION_HOST_STORE_QUOTA_BYTES"):
        load_settings()


def test_negative_delay_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXTENSION_HOST_SETTLE_DELAY_MS", "-1")

    with pytest.raises(ValueError, match="must not be negative"):
        load_settings()


def test_invalid_log_level_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXTENSION_HOST_LOG_LEVEL", "chatty")

    with pytest.raises(ValueError, match="not a logging level"):
        load_settings()


def test_settings_are_frozen() -> None:
    settings = Settings()

    with pytest.raises(ValueError):
        settings.shell = "/bin/bash"
