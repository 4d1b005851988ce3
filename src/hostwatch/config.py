"""Startup configuration for hostwatch."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any


class ConfigError(ValueError):
    """Raised when the startup configuration is invalid."""


@dataclass(frozen=True)
class SourceConfig:
    """One named collection unit with its own interval."""

    id: str
    interval: float


@dataclass(frozen=True)
class AgentConfig:
    """
    Immutable agent configuration.

    Built once at startup and handed to each component; nothing reads the
    environment after that.
    """

    max_metrics: int = 1000  # History capacity
    collect_interval: float = 10.0  # seconds
    push_interval: float = 1.0  # seconds
    host: str = "127.0.0.1"
    port: int = 3030
    max_connections: int = 100
    delivery_queue_size: int = 100
    log_file: Path | None = Path("logs") / "monitoring_agent.log"
    log_level: str = "INFO"
    sources: tuple[SourceConfig, ...] = ()

    def __post_init__(self) -> None:
        if self.max_metrics < 0:
            raise ConfigError(f"max_metrics must be >= 0, got {self.max_metrics}")
        if self.collect_interval <= 0:
            raise ConfigError(f"collect_interval must be > 0, got {self.collect_interval}")
        if self.push_interval <= 0:
            raise ConfigError(f"push_interval must be > 0, got {self.push_interval}")
        if not 1 <= self.port <= 65535:
            raise ConfigError(f"port must be in 1-65535, got {self.port}")
        if self.max_connections < 1:
            raise ConfigError(f"max_connections must be >= 1, got {self.max_connections}")
        if self.delivery_queue_size < 1:
            raise ConfigError(
                f"delivery_queue_size must be >= 1, got {self.delivery_queue_size}"
            )
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"unknown log level {self.log_level!r}")
        for source in self.sources:
            if source.interval <= 0:
                raise ConfigError(f"source {source.id!r} interval must be > 0")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AgentConfig":
        """
        Build a configuration from environment variables.

        Unset variables keep their defaults. An empty ``LOG_FILE`` disables
        the log file.

        Raises:
            ConfigError: If a variable cannot be parsed or is out of range.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        def take(var: str, name: str, convert: Any) -> None:
            raw = env.get(var)
            if raw is None:
                return
            try:
                values[name] = convert(raw.strip())
            except ValueError as exc:
                raise ConfigError(f"invalid {var}={raw!r}: {exc}") from exc

        take("MAX_METRICS", "max_metrics", int)
        take("COLLECT_INTERVAL", "collect_interval", float)
        take("PUSH_INTERVAL", "push_interval", float)
        take("HOSTWATCH_HOST", "host", str)
        take("HOSTWATCH_PORT", "port", int)
        take("MAX_CONNECTIONS", "max_connections", int)
        take("DELIVERY_QUEUE_SIZE", "delivery_queue_size", int)
        take("LOG_FILE", "log_file", lambda raw: Path(raw) if raw else None)
        take("LOG_LEVEL", "log_level", str.upper)
        take("AGENT_SOURCES", "sources", parse_sources)
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "AgentConfig":
        """Return a copy with the non-None overrides applied (CLI flags)."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"unknown settings: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def parse_sources(raw: str) -> tuple[SourceConfig, ...]:
    """
    Parse ``id:interval`` pairs separated by commas.

    >>> parse_sources("web:5,db:15")
    (SourceConfig(id='web', interval=5.0), SourceConfig(id='db', interval=15.0))
    """
    sources: list[SourceConfig] = []
    seen: set[str] = set()
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        source_id, sep, interval = item.partition(":")
        source_id = source_id.strip()
        if not sep or not source_id:
            raise ValueError(f"expected id:interval, got {item!r}")
        if source_id in seen:
            raise ValueError(f"duplicate source id {source_id!r}")
        seen.add(source_id)
        sources.append(SourceConfig(id=source_id, interval=float(interval)))
    return tuple(sources)
