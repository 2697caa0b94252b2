"""
Configuration management for ntfy-watcher.

Handles loading and validation of the YAML configuration file and the
read-modify-write persistence of the last seen feed item id.
"""

import logging
import os
import re
import stat
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Any, NamedTuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ntfy_watcher.errors import (
    ConfigError,
    ConfigParseError,
    ConfigReadError,
    DurationParseError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

# Configuration file read at startup and rewritten after every new item
CONFIG_FILE = "config.yml"

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Longer units come first so "ms" is not read as "m" followed by garbage
_DURATION_PART = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_PLAIN_SCALAR_TAGS = (
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
)


class ScalarText(str):
    """
    A plain YAML scalar kept exactly as written in the file.

    Ids such as ``0012`` or ``1.10`` would otherwise be resolved to numbers
    and lose their original spelling.

    Attributes
    ----------
    tag : str
        The tag YAML resolved the scalar to, used to write it back unquoted.
    """

    tag: str

    def __new__(cls, value: str, tag: str) -> "ScalarText":
        obj = super().__new__(cls, value)
        obj.tag = tag
        return obj


class ConfigLoader(yaml.SafeLoader):
    """Safe loader returning bool, int and float scalars as ScalarText."""


class ConfigDumper(yaml.SafeDumper):
    """Safe dumper writing ScalarText back in its original form."""


def _construct_scalar_text(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> ScalarText:
    return ScalarText(loader.construct_scalar(node), node.tag)


def _represent_scalar_text(dumper: yaml.SafeDumper, data: ScalarText) -> yaml.ScalarNode:
    return dumper.represent_scalar(data.tag, str(data))


for _tag in _PLAIN_SCALAR_TAGS:
    ConfigLoader.add_constructor(_tag, _construct_scalar_text)
ConfigDumper.add_representer(ScalarText, _represent_scalar_text)


def _scalar_text(v: Any) -> Any:
    """Turn a scalar read from YAML into the string it was written as."""
    if isinstance(v, str):
        return str(v)
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration string such as ``"1h30m"`` or ``"45s"``.

    A duration is an optional sign followed by either ``"0"`` or a sequence
    of decimal numbers, each with a unit suffix (``ns``, ``us``, ``ms``,
    ``s``, ``m``, ``h``).

    Parameters
    ----------
    text : str
        The duration string.

    Returns
    -------
    timedelta
        The parsed duration.

    Raises
    ------
    DurationParseError
        If the string is not a valid duration.
    """
    if not isinstance(text, str):
        raise DurationParseError(f"Invalid duration: {text!r}")

    rest = text
    sign = 1
    if rest and rest[0] in "+-":
        sign = -1 if rest[0] == "-" else 1
        rest = rest[1:]

    if rest == "0":
        return timedelta(0)
    if not rest:
        raise DurationParseError(f"Invalid duration: {text!r}")

    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _DURATION_PART.match(rest, pos)
        if match is None:
            raise DurationParseError(f"Invalid duration: {text!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    try:
        return timedelta(seconds=sign * total)
    except (OverflowError, ValueError) as e:
        raise DurationParseError(f"Invalid duration: {text!r}: {e}") from e


class ServerConfig(BaseModel):
    """
    A named ntfy destination.

    Attributes
    ----------
    token : str | None
        Bearer token sent with each notification. Empty means no token.
    ntfy_server : str
        Full URL notifications are POSTed to (server plus topic).
    """

    token: str | None = None
    ntfy_server: str

    @field_validator("token", "ntfy_server", mode="before")
    @classmethod
    def plain_scalar(cls, v: Any) -> Any:
        """Read unquoted YAML scalars as the text written in the file."""
        return _scalar_text(v)

    @field_validator("ntfy_server")
    @classmethod
    def check_not_empty(cls, v: str) -> str:
        """Validate that the endpoint is not empty."""
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v


class WatcherConfig(BaseModel):
    """
    Root configuration, mirroring the layout of ``config.yml``.

    Attributes
    ----------
    servers : dict[str, ServerConfig]
        Destinations keyed by an arbitrary group name.
    last_seen_id : str
        Id of the most recently notified feed item.
    feed_url : str
        URL of the feed to poll.
    refresh_interval : str
        Duration string between two polls, e.g. ``"15m"``.
    request_timeout : int
        HTTP request timeout in seconds for fetches and notifications.
    """

    servers: dict[str, ServerConfig] = Field(default_factory=dict)
    last_seen_id: str = ""
    feed_url: str
    refresh_interval: str
    request_timeout: int = 30

    @field_validator("servers", mode="before")
    @classmethod
    def default_servers(cls, v: Any) -> Any:
        """Treat an empty ``servers:`` key as no destinations."""
        return {} if v is None else v

    @field_validator("last_seen_id", "refresh_interval", mode="before")
    @classmethod
    def coerce_scalar(cls, v: Any) -> Any:
        """Accept unquoted YAML scalars where a string is expected."""
        if v is None:
            return ""
        return _scalar_text(v)

    @field_validator("feed_url", "request_timeout", mode="before")
    @classmethod
    def plain_scalar(cls, v: Any) -> Any:
        """Read unquoted YAML scalars as the text written in the file."""
        return _scalar_text(v)

    @field_validator("request_timeout")
    @classmethod
    def check_positive(cls, v: int) -> int:
        """Validate that the timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v


class LoadedConfig(NamedTuple):
    """Runtime state derived from the configuration file at startup."""

    destinations: dict[str, str | None]
    last_seen_id: str
    feed_url: str
    refresh_interval: timedelta
    request_timeout: int


def build_destinations(servers: dict[str, ServerConfig]) -> dict[str, str | None]:
    """
    Flatten named server groups into an endpoint to token mapping.

    When two groups share an endpoint, the one iterated last wins.

    Parameters
    ----------
    servers : dict[str, ServerConfig]
        Server groups as configured.

    Returns
    -------
    dict[str, str | None]
        Mapping of endpoint URL to bearer token (None when unset).
    """
    return {server.ntfy_server: server.token or None for server in servers.values()}


class ConfigStore:
    """
    YAML-file backed configuration and last-seen-id store.

    The file is read in full on every access; nothing is cached between
    :meth:`load` and :meth:`persist_last_seen_id`.
    """

    def __init__(self, path: str | Path = CONFIG_FILE):
        """
        Initialize the store.

        Parameters
        ----------
        path : str | Path
            Path to the YAML configuration file.
        """
        self.path = Path(path)

    def load(self) -> LoadedConfig:
        """
        Load and validate the configuration file.

        Returns
        -------
        LoadedConfig
            Destinations, last seen id, feed URL and intervals.

        Raises
        ------
        ConfigReadError
            If the file is missing or unreadable.
        ConfigParseError
            If the content does not match the expected structure.
        DurationParseError
            If ``refresh_interval`` is malformed or not positive.
        """
        logger.info("Loading configuration from %s", self.path)

        config = self._validate(self._read_raw())

        refresh_interval = parse_duration(config.refresh_interval)
        if refresh_interval <= timedelta(0):
            raise DurationParseError(
                f"refresh_interval must be positive, got {config.refresh_interval!r}"
            )

        destinations = build_destinations(config.servers)

        logger.info(
            "Configuration loaded successfully: %d destination(s), refresh every %s",
            len(destinations),
            config.refresh_interval,
        )

        return LoadedConfig(
            destinations=destinations,
            last_seen_id=config.last_seen_id,
            feed_url=config.feed_url,
            refresh_interval=refresh_interval,
            request_timeout=config.request_timeout,
        )

    def persist_last_seen_id(self, item_id: str) -> None:
        """
        Rewrite the configuration file with a new ``last_seen_id``.

        The file is re-read and re-validated, only ``last_seen_id`` is
        changed, and the whole document is written back atomically. Keys
        the schema does not know about are kept as they are.

        Parameters
        ----------
        item_id : str
            Id of the item that was just notified.

        Raises
        ------
        PersistenceError
            If the file cannot be read, parsed or rewritten.
        """
        try:
            raw = self._read_raw()
            self._validate(raw)
        except ConfigError as e:
            raise PersistenceError(f"Cannot re-read {self.path} before writing: {e}") from e

        raw["last_seen_id"] = item_id

        try:
            data = yaml.dump(raw, Dumper=ConfigDumper, sort_keys=False, allow_unicode=True)
            self._write_atomic(data)
        except (yaml.YAMLError, OSError) as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

        logger.debug("Persisted last seen id %s to %s", item_id, self.path)

    def _read_raw(self) -> dict[str, Any]:
        """Read the file and return the raw YAML mapping."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigReadError(f"Cannot read configuration file {self.path}: {e}") from e

        try:
            raw = yaml.load(text, Loader=ConfigLoader)
        except yaml.YAMLError as e:
            raise ConfigParseError(f"Invalid YAML in {self.path}: {e}") from e

        if raw is None:
            raise ConfigParseError(f"Configuration file is empty: {self.path}")
        if not isinstance(raw, dict):
            raise ConfigParseError(f"Configuration file must contain a mapping: {self.path}")

        return raw

    def _validate(self, raw: dict[str, Any]) -> WatcherConfig:
        """Validate a raw mapping against the configuration schema."""
        try:
            return WatcherConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigParseError(f"Invalid configuration in {self.path}: {e}") from e

    def _write_atomic(self, data: str) -> None:
        """Write ``data`` to a sibling temp file and rename it over the config."""
        mode = stat.S_IMODE(self.path.stat().st_mode)
        tmp = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            delete=False,
        )
        tmp_path = Path(tmp.name)

        try:
            with tmp:
                tmp.write(data)
            os.chmod(tmp_path, mode)
            tmp_path.replace(self.path)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
