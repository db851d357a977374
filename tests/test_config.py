"""Tests for settings sources."""

from coar_exchange.config import CONFIG_FILE_ENV, Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv(CONFIG_FILE_ENV, raising=False)
    settings = Settings(_env_file=None)

    assert settings.enabled is False
    assert settings.job_max_retries == 3
    assert settings.allowed_ip_list == []


def test_environment_overrides(monkeypatch):
    monkeypatch.delenv(CONFIG_FILE_ENV, raising=False)
    monkeypatch.setenv("COAR_ENABLED", "true")
    monkeypatch.setenv("COAR_ALLOWED_IPS", "10.0.0.1, 192.168.0.0/16,")

    settings = Settings(_env_file=None)

    assert settings.enabled is True
    assert settings.allowed_ip_list == ["10.0.0.1", "192.168.0.0/16"]


def test_yaml_file_wins_over_environment(monkeypatch, tmp_path):
    config = tmp_path / "coar.yml"
    config.write_text("inbox_url: https://yaml.example/inbox\njob_max_retries: 5\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_FILE_ENV, str(config))
    monkeypatch.setenv("COAR_INBOX_URL", "https://env.example/inbox")
    monkeypatch.setenv("COAR_WORKER_CONCURRENCY", "7")

    settings = Settings(_env_file=None)

    assert settings.inbox_url == "https://yaml.example/inbox"
    assert settings.job_max_retries == 5
    assert settings.worker_concurrency == 7


def test_local_mode_uses_sqlite(monkeypatch):
    monkeypatch.delenv(CONFIG_FILE_ENV, raising=False)
    settings = Settings(_env_file=None, local_mode=True)

    assert settings.effective_database_url.startswith("sqlite+aiosqlite")
