"""Worker configuration loader (environment or YAML profile)."""

from __future__ import annotations

from dataclasses import dataclass
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")
_DURATION_PART = re.compile(r"([0-9]*\.?[0-9]+)(ns|us|µs|μs|ms|s|m|h)")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

LOG_LEVELS = ("debug", "info", "warn", "error", "disabled")

DEFAULT_LOG_LEVEL = "info"
DEFAULT_RETRY_DURATION = "5s"
DEFAULT_KAFKA_GROUP_ID = "graph-vulcan-assets"


class ConfigError(ValueError):
    """Raised when the worker configuration is missing or invalid."""


def _resolve_env(value: Any) -> Any:
    if not value or not isinstance(value, str):
        return value
    match = _ENV_PATTERN.fullmatch(value.strip())
    if match:
        return os.getenv(match.group(1)) or ""
    return value


def _resolve_bool(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in {"1", "true", "yes", "y", "on"}:
            return True
        if token in {"", "0", "false", "no", "n", "off"}:
            return False
    return default


def parse_duration(value: str) -> float:
    """Parse a duration like ``5s``, ``1m30s`` or ``250ms`` into seconds."""
    raw = str(value or "").strip()
    if not raw:
        raise ConfigError("empty duration")
    sign = 1.0
    body = raw
    if body[0] in "+-":
        sign = -1.0 if body[0] == "-" else 1.0
        body = body[1:]
    if body == "0":
        return 0.0
    total = 0.0
    pos = 0
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None:
            raise ConfigError(f"invalid duration: {raw!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0:
        raise ConfigError(f"invalid duration: {raw!r}")
    return sign * total


def parse_log_level(value: str | None) -> str:
    token = str(value or "").strip().lower() or DEFAULT_LOG_LEVEL
    if token not in LOG_LEVELS:
        raise ConfigError(f"invalid log level: {value!r}")
    return token


@dataclass(frozen=True)
class SyncConfig:
    kafka_bootstrap_servers: str
    inventory_endpoint: str
    aws_account_annotation_key: str
    log_level: str = DEFAULT_LOG_LEVEL
    retry_duration: float = 5.0
    kafka_group_id: str = DEFAULT_KAFKA_GROUP_ID
    kafka_username: str = ""
    kafka_password: str = ""
    kafka_auto_commit_interval_ms: int | None = None
    inventory_insecure_skip_verify: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SyncConfig":
        env = os.environ if environ is None else environ
        return cls._build(
            log_level=env.get("LOG_LEVEL"),
            retry_duration=env.get("RETRY_DURATION"),
            kafka_bootstrap_servers=env.get("KAFKA_BOOTSTRAP_SERVERS"),
            kafka_group_id=env.get("KAFKA_GROUP_ID"),
            kafka_username=env.get("KAFKA_USERNAME"),
            kafka_password=env.get("KAFKA_PASSWORD"),
            kafka_auto_commit_interval_ms=env.get("KAFKA_AUTO_COMMIT_INTERVAL_MS"),
            aws_account_annotation_key=env.get("AWS_ACCOUNT_ANNOTATION_KEY"),
            inventory_endpoint=env.get("INVENTORY_ENDPOINT"),
            # Only "1" enables it.
            inventory_insecure_skip_verify=env.get("INVENTORY_INSECURE_SKIP_VERIFY") == "1",
        )

    @classmethod
    def load(cls, path: Path) -> "SyncConfig":
        """Load a YAML profile. ``${VAR}`` values are read from the environment."""
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"could not read profile {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"profile {path} must be a mapping")
        if "graph_vulcan_assets" in data:
            data = data["graph_vulcan_assets"] or {}
        kafka = data.get("kafka") or {}
        inventory = data.get("inventory") or {}
        if not isinstance(kafka, dict) or not isinstance(inventory, dict):
            raise ConfigError(f"profile {path}: kafka and inventory must be mappings")
        return cls._build(
            log_level=_resolve_env(data.get("log_level")),
            retry_duration=_resolve_env(data.get("retry_duration")),
            kafka_bootstrap_servers=_resolve_env(kafka.get("bootstrap_servers")),
            kafka_group_id=_resolve_env(kafka.get("group_id")),
            kafka_username=_resolve_env(kafka.get("username")),
            kafka_password=_resolve_env(kafka.get("password")),
            kafka_auto_commit_interval_ms=_resolve_env(kafka.get("auto_commit_interval_ms")),
            aws_account_annotation_key=_resolve_env(data.get("aws_account_annotation_key")),
            inventory_endpoint=_resolve_env(inventory.get("endpoint")),
            inventory_insecure_skip_verify=_resolve_bool(
                _resolve_env(inventory.get("insecure_skip_verify")), default=False
            ),
        )

    @classmethod
    def _build(
        cls,
        *,
        log_level: Any,
        retry_duration: Any,
        kafka_bootstrap_servers: Any,
        kafka_group_id: Any,
        kafka_username: Any,
        kafka_password: Any,
        kafka_auto_commit_interval_ms: Any,
        aws_account_annotation_key: Any,
        inventory_endpoint: Any,
        inventory_insecure_skip_verify: bool,
    ) -> "SyncConfig":
        retry = parse_duration(str(retry_duration or DEFAULT_RETRY_DURATION))
        if retry < 0:
            raise ConfigError(f"negative retry duration: {retry_duration!r}")
        return cls(
            kafka_bootstrap_servers=_required(kafka_bootstrap_servers, "KAFKA_BOOTSTRAP_SERVERS"),
            inventory_endpoint=_required(inventory_endpoint, "INVENTORY_ENDPOINT"),
            aws_account_annotation_key=_required(aws_account_annotation_key, "AWS_ACCOUNT_ANNOTATION_KEY"),
            log_level=parse_log_level(log_level),
            retry_duration=retry,
            kafka_group_id=str(kafka_group_id or "").strip() or DEFAULT_KAFKA_GROUP_ID,
            kafka_username=str(kafka_username or ""),
            kafka_password=str(kafka_password or ""),
            kafka_auto_commit_interval_ms=_optional_int(
                kafka_auto_commit_interval_ms, "KAFKA_AUTO_COMMIT_INTERVAL_MS"
            ),
            inventory_insecure_skip_verify=inventory_insecure_skip_verify,
        )


def _required(value: Any, name: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ConfigError(f"{name} is required")
    return text


def _optional_int(value: Any, name: str) -> int | None:
    if value in (None, ""):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer: {value!r}") from exc
    if parsed < 0:
        raise ConfigError(f"{name} must not be negative: {value!r}")
    return parsed
