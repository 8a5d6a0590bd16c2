import pytest

from techshop.config import Settings


def test_defaults_when_env_is_empty():
    assert Settings.from_env({}) == Settings()


def test_reads_environment():
    settings = Settings.from_env(
        {
            "TECHSHOP_HOST": "127.0.0.1",
            "TECHSHOP_PORT": "9000",
            "TECHSHOP_LOG_LEVEL": "debug",
            "TECHSHOP_SNAPSHOT_TIMEOUT": "0.5",
            "TECHSHOP_DECREMENT_TIMEOUT": "0.25",
            "TECHSHOP_ALLOW_PARTIAL": "yes",
            "DATABASE_URL": "sqlite+aiosqlite:///shop.db",
        }
    )

    assert settings == Settings(
        host="127.0.0.1",
        port=9000,
        log_level="DEBUG",
        snapshot_timeout=0.5,
        decrement_timeout=0.25,
        allow_partial=True,
        database_url="sqlite+aiosqlite:///shop.db",
    )


def test_blank_database_url_means_in_memory():
    assert Settings.from_env({"DATABASE_URL": ""}).database_url is None


@pytest.mark.parametrize(
    "env",
    [
        {"TECHSHOP_PORT": "0"},
        {"TECHSHOP_PORT": "http"},
        {"TECHSHOP_SNAPSHOT_TIMEOUT": "0"},
        {"TECHSHOP_DECREMENT_TIMEOUT": "-1"},
        {"TECHSHOP_LOG_LEVEL": "chatty"},
        {"TECHSHOP_ALLOW_PARTIAL": "maybe"},
    ],
)
def test_rejects_bad_values(env):
    with pytest.raises(ValueError):
        Settings.from_env(env)
