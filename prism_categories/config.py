import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml

from .exceptions import ConfigError
from .logging_config import level_number
from .models import Credential

logger = logging.getLogger(__name__)

SECURITY_RULE_ACTIONS = {"MONITOR", "APPLY"}


@dataclass
class PrismSettings:
    host: str  # e.g. "pc.example.com" or "10.0.0.10"
    credential: Credential
    port: int = 9440
    verify_ssl: bool = False
    timeout: int = 60
    page_size: int = 100
    task_poll_interval: float = 2.0
    task_poll_attempts: int = 30


@dataclass
class SecurityPolicySettings:
    enabled: bool = True
    name_prefix: str = ""
    action: str = "MONITOR"
    app_type: Optional[str] = None


@dataclass
class Settings:
    prism: PrismSettings
    # category key -> category value -> description
    categories: Dict[str, Dict[str, str]]
    security_policy: SecurityPolicySettings = field(default_factory=SecurityPolicySettings)
    log_level: str = "INFO"
    log_file: Optional[Path] = None


def _read_secret_file(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    p = Path(path)
    if not p.is_file():
        logger.warning("Secret file %s does not exist", p)
        return None
    return p.read_text(encoding="utf-8").strip()


def _as_bool(raw: object, name: str, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        v = raw.strip().lower()
        if v in {"1", "true", "yes", "y", "on"}:
            return True
        if v in {"0", "false", "no", "n", "off"}:
            return False
    raise ConfigError(f"Invalid boolean value for {name}={raw!r} (expected true/false).")


def _as_int(raw: object, name: str, default: int, minimum: int = 1) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _parse_categories(raw: object) -> Dict[str, Dict[str, str]]:
    """Parse the categories mapping (key -> value -> description)."""
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("categories must be a mapping of key -> {value: description}")

    out: Dict[str, Dict[str, str]] = {}
    for key, values in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise ConfigError(f"Invalid category key: {key!r}")
        if values is None:
            values = {}
        if not isinstance(values, dict):
            raise ConfigError(f"categories.{key} must be a mapping of value -> description")

        parsed: Dict[str, str] = {}
        for value, description in values.items():
            if value is None or not str(value).strip():
                raise ConfigError(f"categories.{key} contains an empty value name")
            parsed[str(value).strip()] = "" if description is None else str(description)
        out[key.strip()] = parsed
    return out


def _parse_prism(raw: object) -> PrismSettings:
    if not isinstance(raw, dict):
        raise ConfigError("prism must be a mapping/object")

    host = raw.get("host")
    if not isinstance(host, str) or not host.strip():
        raise ConfigError("prism.host is required")
    # Accept "https://host[:port]/" as well as a bare host name.
    host = host.strip().rstrip("/")
    for scheme in ("https://", "http://"):
        if host.startswith(scheme):
            host = host[len(scheme):]
    port = _as_int(raw.get("port"), "prism.port", 9440)
    if host.startswith("["):
        # IPv6 literal, optionally "[addr]:port"
        end = host.find("]")
        if end == -1:
            raise ConfigError(f"prism.host has an unterminated IPv6 literal: {host!r}")
        rest = host[end + 1:]
        host = host[:end + 1]
        if rest:
            if not rest.startswith(":"):
                raise ConfigError(f"prism.host is malformed: {raw.get('host')!r}")
            port = _as_int(rest[1:], "prism.host port", port)
    elif host.count(":") == 1:
        host, _, port_str = host.partition(":")
        port = _as_int(port_str, "prism.host port", port)
    elif ":" in host:
        # Bare IPv6 literal; brackets are needed inside the URL.
        host = f"[{host}]"

    username = raw.get("username")
    if not isinstance(username, str) or not username.strip():
        raise ConfigError("prism.username is required")

    password: Optional[str] = None
    if isinstance(raw.get("password"), str) and raw["password"]:
        password = raw["password"]
    elif isinstance(raw.get("password_file"), str) and raw["password_file"].strip():
        password = _read_secret_file(raw["password_file"].strip())
    if not password:
        password = os.getenv("PRISM_PASSWORD")
    if not password:
        raise ConfigError(
            "prism.password (or prism.password_file, or PRISM_PASSWORD env) is required"
        )

    try:
        task_poll_interval = float(raw.get("task_poll_interval", 2))
    except (TypeError, ValueError) as exc:
        raise ConfigError("prism.task_poll_interval must be a number (seconds)") from exc

    return PrismSettings(
        host=host,
        port=port,
        credential=Credential(username=username.strip(), password=password),
        verify_ssl=_as_bool(raw.get("verify_ssl"), "prism.verify_ssl", False),
        timeout=_as_int(raw.get("timeout"), "prism.timeout", 60),
        page_size=_as_int(raw.get("page_size"), "prism.page_size", 100),
        task_poll_interval=task_poll_interval,
        task_poll_attempts=_as_int(raw.get("task_poll_attempts"), "prism.task_poll_attempts", 30),
    )


def _parse_security_policy(raw: object) -> SecurityPolicySettings:
    if raw is None:
        return SecurityPolicySettings()
    if not isinstance(raw, dict):
        raise ConfigError("security_policy must be a mapping/object")

    action = str(raw.get("action") or "MONITOR").strip().upper()
    if action not in SECURITY_RULE_ACTIONS:
        raise ConfigError(
            f"security_policy.action must be one of {sorted(SECURITY_RULE_ACTIONS)}, got {action!r}"
        )

    app_type = raw.get("app_type")
    if app_type is not None and not isinstance(app_type, str):
        raise ConfigError("security_policy.app_type must be a string or null")

    return SecurityPolicySettings(
        enabled=_as_bool(raw.get("enabled"), "security_policy.enabled", True),
        name_prefix=str(raw.get("name_prefix") or ""),
        action=action,
        app_type=app_type.strip() if isinstance(app_type, str) and app_type.strip() else None,
    )


def parse_settings(raw: object) -> Settings:
    """Build Settings from an already-parsed YAML/JSON document."""
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping/object")

    prism = _parse_prism(raw.get("prism"))

    runtime = raw.get("runtime") or {}
    if not isinstance(runtime, dict):
        raise ConfigError("runtime must be a mapping/object")
    log_level = str(runtime.get("log_level", "INFO")).strip().upper()
    if level_number(log_level) is None:
        raise ConfigError(f"runtime.log_level is not a known level: {log_level!r}")
    log_file = runtime.get("log_file")

    categories = _parse_categories(raw.get("categories"))
    if not categories:
        logger.warning("No categories configured; nothing will be created.")

    return Settings(
        prism=prism,
        categories=categories,
        security_policy=_parse_security_policy(raw.get("security_policy")),
        log_level=log_level,
        log_file=Path(str(log_file)) if log_file else None,
    )


def load_settings(path: Optional[str] = None) -> Settings:
    """Load settings from the YAML (or JSON) file at ``path`` or $APP_CONFIG_FILE."""
    path = path or os.getenv("APP_CONFIG_FILE")
    if not path:
        raise ConfigError("No config file given (use --config or APP_CONFIG_FILE)")

    p = Path(path)
    if not p.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read config file: {path}") from exc

    return parse_settings(raw)
