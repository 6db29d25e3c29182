import configparser

import pytest

from pingpanel.config import (
    Settings,
    get_settings,
    load_ini_config,
    parse_host_list,
    parse_refresh_interval,
)

ENV_VARS = [
    "PING_SERVERS",
    "PING_REFRESH_TIMER",
    "PING_TIMEOUT_MS",
    "PING_TICK_INTERVAL",
    "PING_CONFIG_FILE",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_parse_host_list_trims_and_drops_empty_entries():
    assert parse_host_list(" 1.1.1.1, 4.2.2.2,,9.9.9.9 ,") == ["1.1.1.1", "4.2.2.2", "9.9.9.9"]
    assert parse_host_list("") == []
    assert parse_host_list(None) == []
    assert parse_host_list(" , ,") == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, 10.0),
        ("", 10.0),
        ("abc", 10.0),
        ("0", 10.0),
        ("-5", 10.0),
        ("nan", 10.0),
        ("inf", 10.0),
        ("2.5", 2.5),
        ("30", 30.0),
    ],
)
def test_parse_refresh_interval(raw, expected):
    assert parse_refresh_interval(raw) == expected


def test_settings_from_env_parses_ping_servers(monkeypatch):
    monkeypatch.setenv("PING_SERVERS", "1.1.1.1, 4.2.2.2,9.9.9.9")
    monkeypatch.setenv("PING_REFRESH_TIMER", "15")

    settings = Settings.from_env()
    assert settings.ping_servers == ["1.1.1.1", "4.2.2.2", "9.9.9.9"]
    assert settings.refresh_interval_s == 15.0


def test_settings_defaults():
    settings = Settings.from_env()

    assert settings.ping_servers == []
    assert settings.refresh_interval_s == 10.0
    assert settings.probe_timeout_ms == 1000
    assert settings.tick_interval_s == 1.0
    assert settings.log_level == "INFO"


def test_invalid_refresh_timer_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("PING_REFRESH_TIMER", "-3")

    assert Settings.from_env().refresh_interval_s == 10.0


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("PING_SERVERS", "example.com")
    s1 = get_settings()
    s2 = get_settings()
    assert s1 is s2
    assert s1.ping_servers == ["example.com"]


def test_missing_ini_file_is_created_with_defaults(tmp_path, monkeypatch):
    path = tmp_path / "pingpanel.ini"
    monkeypatch.setenv("PING_CONFIG_FILE", str(path))

    settings = Settings.from_env()

    assert path.exists()
    parser = configparser.ConfigParser()
    parser.optionxform = str
    parser.read(path, encoding="utf-8")
    assert parser["Ping Plugin"]["RefreshTimer"] == "10"
    assert settings.ping_servers == ["CommaSeparated", "ListOf", "ServersHere"]
    assert settings.refresh_interval_s == 10.0


def test_ini_values_are_used_and_env_wins(tmp_path, monkeypatch):
    path = tmp_path / "pingpanel.ini"
    path.write_text(
        "[Ping Plugin]\nServers = 1.1.1.1,4.2.2.2\nRefreshTimer = 20\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("PING_CONFIG_FILE", str(path))

    settings = Settings.from_env()
    assert settings.ping_servers == ["1.1.1.1", "4.2.2.2"]
    assert settings.refresh_interval_s == 20.0

    monkeypatch.setenv("PING_SERVERS", "9.9.9.9")
    assert Settings.from_env().ping_servers == ["9.9.9.9"]


def test_invalid_ini_refresh_timer_is_rewritten(tmp_path):
    path = tmp_path / "pingpanel.ini"
    path.write_text(
        "[Ping Plugin]\nServers = 1.1.1.1\nRefreshTimer = soon\n",
        encoding="utf-8",
    )

    values = load_ini_config(str(path))

    assert values["Servers"] == "1.1.1.1"
    assert values["RefreshTimer"] == "10"
    assert "RefreshTimer = 10" in path.read_text(encoding="utf-8")


def test_unreadable_ini_keeps_defaults(tmp_path, caplog):
    path = tmp_path / "pingpanel.ini"
    path.write_text("this is not an ini file\n", encoding="utf-8")

    with caplog.at_level("WARNING", logger="pingpanel.config"):
        values = load_ini_config(str(path))

    assert values == {}
    assert "Could not load ping config" in caplog.text


def test_parse_host_list_drops_option_like_entries(caplog):
    with caplog.at_level("WARNING", logger="pingpanel.config"):
        hosts = parse_host_list("1.1.1.1,-f,--help, -c 5")

    assert hosts == ["1.1.1.1"]
    assert "Ignoring invalid host" in caplog.text
