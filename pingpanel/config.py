import configparser
import logging
import math
import os
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_S = 10.0
DEFAULT_PROBE_TIMEOUT_MS = 1000
DEFAULT_TICK_INTERVAL_S = 1.0

# INI layout of the desktop panel plugin this service stands in for
INI_SECTION = "Ping Plugin"
INI_SERVERS_KEY = "Servers"
INI_REFRESH_KEY = "RefreshTimer"
INI_PLACEHOLDER_SERVERS = "CommaSeparated,ListOf,ServersHere"


def parse_host_list(raw: Optional[str]) -> List[str]:
    """
    Split a comma-separated host string into trimmed, non-empty entries.

    Entries starting with "-" are dropped, they would reach ping as options.
    """
    if not raw:
        return []
    hosts = []
    for host in raw.split(","):
        host = host.strip()
        if not host:
            continue
        if host.startswith("-"):
            logger.warning("Ignoring invalid host %r", host)
            continue
        hosts.append(host)
    return hosts


def _parse_positive(raw, default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return value


def parse_refresh_interval(raw, default: float = DEFAULT_REFRESH_INTERVAL_S) -> float:
    """
    Turn a raw refresh interval into a positive number of seconds.

    Missing, non-numeric, non-finite and non-positive values fall back to
    the default.
    """
    return _parse_positive(raw, default)


def load_ini_config(path: str) -> Dict[str, str]:
    """
    Read the [Ping Plugin] section from an INI file.

    A missing file is created with placeholder values. Missing or invalid
    keys are written back with defaults. Read and parse errors are logged
    and an empty mapping is returned, so callers keep their defaults.
    """
    parser = configparser.ConfigParser()
    parser.optionxform = str  # keep "Servers" / "RefreshTimer" casing

    if not os.path.exists(path):
        parser[INI_SECTION] = {
            INI_SERVERS_KEY: INI_PLACEHOLDER_SERVERS,
            INI_REFRESH_KEY: str(int(DEFAULT_REFRESH_INTERVAL_S)),
        }
        _write_ini(parser, path)
        return dict(parser[INI_SECTION])

    try:
        with open(path, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except (OSError, configparser.Error) as exc:
        logger.warning("Could not load ping config %s: %s", path, exc)
        return {}

    if not parser.has_section(INI_SECTION):
        parser.add_section(INI_SECTION)
    section = parser[INI_SECTION]

    dirty = False
    if INI_SERVERS_KEY not in section:
        section[INI_SERVERS_KEY] = INI_PLACEHOLDER_SERVERS
        dirty = True

    raw_refresh = section.get(INI_REFRESH_KEY)
    if parse_refresh_interval(raw_refresh, default=-1.0) <= 0:
        section[INI_REFRESH_KEY] = str(int(DEFAULT_REFRESH_INTERVAL_S))
        dirty = True

    if dirty:
        _write_ini(parser, path)

    return dict(section)


def _write_ini(parser: configparser.ConfigParser, path: str) -> None:
    try:
        with open(path, "w", encoding="utf-8") as f:
            parser.write(f)
    except OSError as exc:
        logger.warning("Could not write ping config %s: %s", path, exc)


class Settings(BaseModel):
    ping_servers: List[str] = Field(
        default_factory=list,
        description="Hosts or IPs to ping each round, e.g. ['1.1.1.1', '4.2.2.2']",
    )
    refresh_interval_s: float = Field(
        default=DEFAULT_REFRESH_INTERVAL_S,
        gt=0,
        description="Minimum number of seconds between two probing rounds",
    )
    probe_timeout_ms: int = Field(
        default=DEFAULT_PROBE_TIMEOUT_MS,
        gt=0,
        description="Hard timeout for a single ping probe in milliseconds",
    )
    tick_interval_s: float = Field(
        default=DEFAULT_TICK_INTERVAL_S,
        gt=0,
        description="Cadence of the periodic tick that drives the scheduler",
    )
    config_file: Optional[str] = Field(
        default=None,
        description="Optional INI file with a [Ping Plugin] section",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level name for the pingpanel loggers",
    )

    @classmethod
    def from_env(cls) -> "Settings":
        config_file = os.getenv("PING_CONFIG_FILE") or None
        ini_values: Dict[str, str] = {}
        if config_file:
            ini_values = load_ini_config(config_file)

        # env vars win over the INI file
        raw_servers = os.getenv("PING_SERVERS")
        if raw_servers is None:
            raw_servers = ini_values.get(INI_SERVERS_KEY, "")

        raw_refresh = os.getenv("PING_REFRESH_TIMER")
        if raw_refresh is None:
            raw_refresh = ini_values.get(INI_REFRESH_KEY)

        timeout_ms = int(
            _parse_positive(
                os.getenv("PING_TIMEOUT_MS"), default=DEFAULT_PROBE_TIMEOUT_MS
            )
        )

        return cls(
            ping_servers=parse_host_list(raw_servers),
            refresh_interval_s=parse_refresh_interval(raw_refresh),
            probe_timeout_ms=max(1, timeout_ms),
            tick_interval_s=_parse_positive(
                os.getenv("PING_TICK_INTERVAL"), default=DEFAULT_TICK_INTERVAL_S
            ),
            config_file=config_file,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
