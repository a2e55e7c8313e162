"""Settings are declared with the pydantic-settings v2 config dict."""

import warnings

from pydantic import PydanticDeprecatedSince20

from core.settings import Settings


def test_settings_use_a_config_dict():
    assert "Config" not in vars(Settings)
    assert Settings.model_config["env_file"] == ".env"
    assert Settings.model_config["extra"] == "ignore"
    assert Settings.model_config["case_sensitive"] is False


def test_building_settings_raises_no_deprecation_warning(monkeypatch):
    monkeypatch.setenv("OUTBOX_MAX_ATTEMPTS", "7")

    with warnings.catch_warnings():
        warnings.simplefilter("error", PydanticDeprecatedSince20)
        configured = Settings(_env_file=None)

    assert configured.OUTBOX_MAX_ATTEMPTS == 7
    assert configured.OUTBOX_CLAIM_TIMEOUT_SECONDS == 300
