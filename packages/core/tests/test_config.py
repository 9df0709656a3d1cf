"""Tests for configuration loading."""

from codesage_core.config import is_platform_configured, is_provider_configured, load_config


def _clear_credentials(monkeypatch):
    for var in (
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GITHUB_APP_ID",
        "GITHUB_APP_PRIVATE_KEY_PATH",
        "GITHUB_INSTALLATION_ID",
    ):
        monkeypatch.delenv(var, raising=False)


def test_defaults_applied_when_no_config_file(tmp_path, monkeypatch):
    _clear_credentials(monkeypatch)
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["provider_timeout"] == 30
    assert config["github_timeout"] == 15
    assert config["token_exchange_timeout"] == 10
    assert config["max_attempts"] == 3
    assert config["backoff_base"] == 2.0
    assert config["mock_on_exhaustion"] is True
    assert config["store"] == "sqlite"
    assert config["openai_api_key"] is None


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".codesage.yml"
    cfg.write_text("openai_model: gpt-4o-mini\nmax_attempts: 5\nstore: memory\n")
    config = load_config(config_path=str(cfg))
    assert config["openai_model"] == "gpt-4o-mini"
    assert config["max_attempts"] == 5
    assert config["store"] == "memory"


def test_empty_config_file_keeps_defaults(tmp_path):
    cfg = tmp_path / ".codesage.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["workers"] == 1


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".codesage.yml"
    cfg.write_text("workers: 2\n")
    config = load_config(config_path=str(cfg), cli_overrides={"workers": 4})
    assert config["workers"] == 4


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".codesage.yml"
    cfg.write_text("workers: 2\n")
    config = load_config(config_path=str(cfg), cli_overrides={"workers": None})
    assert config["workers"] == 2


def test_env_vars_loaded(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "oai-key")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    monkeypatch.setenv("GITHUB_APP_ID", "123")
    monkeypatch.setenv("GITHUB_APP_PRIVATE_KEY_PATH", "/keys/app.pem")
    monkeypatch.setenv("GITHUB_INSTALLATION_ID", "456")
    config = load_config(config_path="nonexistent.yml")
    assert config["openai_api_key"] == "oai-key"
    assert config["anthropic_api_key"] == "ant-key"
    assert config["github_app_id"] == "123"
    assert config["github_private_key_path"] == "/keys/app.pem"
    assert config["github_installation_id"] == "456"


def test_credentials_in_file_are_ignored(tmp_path, monkeypatch):
    _clear_credentials(monkeypatch)
    cfg = tmp_path / ".codesage.yml"
    cfg.write_text("openai_api_key: from-file\n")
    config = load_config(config_path=str(cfg))
    assert config["openai_api_key"] is None


def test_is_provider_configured():
    assert is_provider_configured("sk-123")
    assert not is_provider_configured(None)
    assert not is_provider_configured("")
    assert not is_provider_configured("   ")


def test_platform_needs_every_credential():
    full = {"github_app_id": "1", "github_private_key_path": "/k.pem", "github_installation_id": "2"}
    assert is_platform_configured(full)
    assert not is_platform_configured({**full, "github_installation_id": None})
    assert not is_platform_configured({**full, "github_app_id": " "})
    assert not is_platform_configured({})
