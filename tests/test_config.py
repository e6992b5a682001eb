import pytest

from memberhub.config import load_config, parse_duration_to_seconds


@pytest.mark.parametrize("value, expected", [
    ("15m", 900),
    ("2h", 7200),
    ("7d", 604800),
    ("45s", 45),
    ("120", 120),
    (" 3H ", 10800),
    (600, 600),
])
def test_parse_duration(value, expected):
    assert parse_duration_to_seconds(value) == expected


@pytest.mark.parametrize("value", [None, "", "abc", "15x", "-5m", "1.5h", True])
def test_parse_duration_invalid_uses_default(value):
    assert parse_duration_to_seconds(value) == 900
    assert parse_duration_to_seconds(value, default_seconds=3600) == 3600


def test_load_config_defaults(monkeypatch):
    for name in ("JWT_SECRET", "JWT_EXPIRES_IN", "PASSWORD_RESET_TTL", "SMTP_HOST", "ELECTION_SCHEDULER"):
        monkeypatch.delenv(name, raising=False)
    config = load_config()
    assert config['JWT_SECRET_KEY'] == 'dev-secret'
    assert config['JWT_EXPIRES_IN'] == '15m'
    assert config['PASSWORD_RESET_TTL_SECONDS'] == 3600
    assert config['MAIL_SERVER'] is None
    assert config['SCHEDULER_ENABLED'] is True
    assert config['PADRON_MAX_ROWS'] == 5000


def test_load_config_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "from-env")
    monkeypatch.setenv("PASSWORD_RESET_TTL", "30m")
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "465")
    monkeypatch.setenv("ELECTION_SCHEDULER", "false")
    config = load_config()
    assert config['JWT_SECRET_KEY'] == 'from-env'
    assert config['PASSWORD_RESET_TTL_SECONDS'] == 1800
    assert config['MAIL_SERVER'] == 'smtp.example.com'
    assert config['MAIL_PORT'] == 465
    assert config['MAIL_USE_SSL'] is True
    assert config['SCHEDULER_ENABLED'] is False
