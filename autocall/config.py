"""Configuration management for the autocall administration service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml


DEFAULT_VENDOR_BASE_URL = "https://apilk.sipuni.com/api/ver2"
DEFAULT_VENDOR_TIMEOUT = 90.0
DEFAULT_TOKEN_TTL_DAYS = 7


class ConfigurationError(RuntimeError):
    """Raised when required configuration is missing or malformed."""


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration injected into the auth and vendor components."""

    jwt_secret: str
    database_path: Path
    vendor_base_url: str = DEFAULT_VENDOR_BASE_URL
    vendor_token: Optional[str] = None
    vendor_autocall_token: Optional[str] = None
    vendor_timeout: float = DEFAULT_VENDOR_TIMEOUT
    token_ttl: timedelta = timedelta(days=DEFAULT_TOKEN_TTL_DAYS)
    cors_origins: Tuple[str, ...] = ()

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        secret = data.get("jwt_secret")
        if not secret or not str(secret).strip():
            raise ConfigurationError(
                "A token signing secret is required. Set AUTOCALL_JWT_SECRET or jwt_secret."
            )

        try:
            timeout = float(data.get("vendor_timeout", DEFAULT_VENDOR_TIMEOUT))
            ttl_days = float(data.get("token_ttl_days", DEFAULT_TOKEN_TTL_DAYS))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid numeric configuration value: {exc}") from exc
        if timeout <= 0:
            raise ConfigurationError("vendor_timeout must be positive")
        if ttl_days <= 0:
            raise ConfigurationError("token_ttl_days must be positive")

        base_url = str(data.get("vendor_base_url") or DEFAULT_VENDOR_BASE_URL).strip().rstrip("/")

        return Settings(
            jwt_secret=str(secret).strip(),
            database_path=resolve_database_path(
                str(data["database_path"]) if data.get("database_path") else None,
                base_path=base_path,
            ),
            vendor_base_url=base_url,
            vendor_token=_optional_str(data.get("vendor_token")),
            vendor_autocall_token=_optional_str(data.get("vendor_autocall_token")),
            vendor_timeout=timeout,
            token_ttl=timedelta(days=ttl_days),
            cors_origins=_parse_origins(data.get("cors_origins")),
        )


_ENV_KEYS: Dict[str, str] = {
    "AUTOCALL_JWT_SECRET": "jwt_secret",
    "AUTOCALL_DB_PATH": "database_path",
    "AUTOCALL_VENDOR_BASE_URL": "vendor_base_url",
    "AUTOCALL_VENDOR_TOKEN": "vendor_token",
    "AUTOCALL_VENDOR_AUTOCALL_TOKEN": "vendor_autocall_token",
    "AUTOCALL_VENDOR_TIMEOUT": "vendor_timeout",
    "AUTOCALL_TOKEN_TTL_DAYS": "token_ttl_days",
    "AUTOCALL_CORS_ORIGINS": "cors_origins",
}


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _parse_origins(value: object) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value]
    else:
        raise ConfigurationError("cors_origins must be a list or a comma separated string")
    return tuple(item.strip() for item in items if item.strip())


def resolve_database_path(value: Optional[str], *, base_path: Path | None = None) -> Path:
    """Resolve the on-disk path for the user database."""

    if value:
        candidate = Path(value).expanduser()
        if not candidate.is_absolute() and base_path is not None:
            candidate = base_path / candidate
        return candidate.resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "autocall.sqlite3").resolve(strict=False)


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the optional YAML configuration file."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    candidate = (Path(__file__).resolve().parent.parent / "config" / "autocall.yaml").resolve(strict=False)
    return candidate if candidate.exists() else None


def _load_yaml(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")

    section = raw.get("autocall", raw)
    if not isinstance(section, dict):
        raise ConfigurationError("The 'autocall' configuration section must be a mapping")
    return dict(section)


def load_settings(
    environ: Mapping[str, str] | None = None,
    *,
    config_path: Path | None = None,
) -> Settings:
    """Load settings from an optional YAML file overlaid with environment variables."""

    env = os.environ if environ is None else environ
    if config_path is None:
        config_path = resolve_config_path(env.get("AUTOCALL_CONFIG"))

    data: Dict[str, object] = {}
    base_path: Path | None = None
    if config_path is not None:
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file {config_path} does not exist")
        data.update(_load_yaml(config_path))
        base_path = config_path.parent

    for env_key, field_name in _ENV_KEYS.items():
        value = env.get(env_key)
        if value is not None and value.strip():
            data[field_name] = value.strip()

    return Settings.from_dict(data, base_path=base_path)


__all__ = [
    "ConfigurationError",
    "DEFAULT_VENDOR_BASE_URL",
    "Settings",
    "load_settings",
    "resolve_config_path",
    "resolve_database_path",
]
