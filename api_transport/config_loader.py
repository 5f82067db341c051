"""Config Loader - Reads HttpClient settings from YAML.

The settings can sit in a file of their own or under an `http_client:` key of
a larger SDK settings file. Proxy settings may be written flat, matching the
HttpClient constructor:

    proxy_protocol: http
    proxy_address: proxy.local
    proxy_port: 8080

or grouped:

    proxy:
      protocol: http
      address: proxy.local
      port: ${PROXY_PORT:-8080}
      user: ${PROXY_USER}
      password: ${PROXY_PASS}

Values may reference environment variables as ${NAME} or ${NAME:-default},
which keeps proxy credentials out of the file.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from api_transport.models import ClientConfig

DEFAULT_SECTION = "http_client"

# ${NAME} or ${NAME:-default}
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")

# Keys of a grouped `proxy:` block and the ClientConfig field each maps to.
_PROXY_KEYS = {
    "protocol": "proxy_protocol",
    "address": "proxy_address",
    "port": "proxy_port",
    "user": "proxy_user",
    "password": "proxy_pass",
}


class ConfigError(Exception):
    """Raised when client settings cannot be loaded."""


def load_client_config(config_path: Path | str, section: str = DEFAULT_SECTION) -> ClientConfig:
    """Load HttpClient settings from a YAML file.

    Args:
        config_path: YAML file to read.
        section: Key holding the client settings. When the document has no
                 such key the whole document is taken as the settings.

    Raises:
        ConfigError: If the file is missing or unreadable, a referenced
                     environment variable is unset, or the settings are invalid.
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        document = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ConfigError(f"{config_path} must contain a YAML mapping")

    settings = document.get(section, document)
    if settings is None:
        settings = {}
    if not isinstance(settings, dict):
        raise ConfigError(f"'{section}' in {config_path} must be a mapping")

    settings = _flatten_proxy(_expand_env(settings))

    try:
        return ClientConfig.model_validate(settings)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid client settings in {config_path}: {problems}") from e


def _flatten_proxy(settings: dict[str, Any]) -> dict[str, Any]:
    """Turn a grouped `proxy:` block into the flat proxy_* fields."""
    if "proxy" not in settings:
        return settings

    settings = dict(settings)
    proxy = settings.pop("proxy")
    if proxy is None:
        return settings
    if not isinstance(proxy, dict):
        raise ConfigError("'proxy' must be a mapping")

    unknown = sorted(set(proxy) - set(_PROXY_KEYS))
    if unknown:
        raise ConfigError(
            f"Unknown proxy keys: {', '.join(unknown)}. Allowed: {', '.join(_PROXY_KEYS)}"
        )

    for key, value in proxy.items():
        field = _PROXY_KEYS[key]
        if field in settings:
            raise ConfigError(f"Proxy {key} given both as 'proxy.{key}' and '{field}'")
        settings[field] = value
    return settings


def _expand_env(value: Any) -> Any:
    """Expand ${NAME} references in every string value (keys are left alone)."""
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(_env_value, value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    return value


def _env_value(match: re.Match) -> str:
    name = match.group("name")
    value = os.environ.get(name)
    if value is not None:
        return value
    default = match.group("default")
    if default is not None:
        return default
    raise ConfigError(f"Environment variable '{name}' is not set")
