"""Environment-backed configuration for the query mock engine."""

from __future__ import annotations

from dataclasses import dataclass
import os

SUPPORTED_DIALECTS: tuple[str, ...] = ("postgresql", "sqlite", "mysql")


@dataclass(frozen=True)
class MockConfig:
    """Settings shared by the controller and the SQLAlchemy binding."""

    dialect: str = "postgresql"
    strip_qualifiers: bool = True
    log_calls: bool = False


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"Invalid boolean value for {name}: {raw}")


def _read_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value not in choices:
        raise RuntimeError(f"Invalid value for {name}: {raw} (expected one of {', '.join(choices)})")
    return value


def load_mock_config() -> MockConfig:
    """Load and validate mock configuration from environment."""
    return MockConfig(
        dialect=_read_choice("QUERYMOCK_DIALECT", "postgresql", SUPPORTED_DIALECTS),
        strip_qualifiers=_read_bool("QUERYMOCK_STRIP_QUALIFIERS", True),
        log_calls=_read_bool("QUERYMOCK_LOG_CALLS", False),
    )
