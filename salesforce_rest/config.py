"""
Client configuration

Loaded from a YAML file with a ``salesforce:`` section:

    salesforce:
      instance_url: https://login.salesforce.com
      api_version: "59.0"
      client_id: ...
      client_secret: ...
      username: ...
      password: ...
      security_token: ...
      return_type: array
      connect_timeout: 2
      read_timeout: 60
      get_attempts: 1

SF_* environment variables override the file.
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import structlog
import yaml

logger = structlog.get_logger()

ENV_OVERRIDES = {
    "SF_INSTANCE_URL": "instance_url",
    "SF_API_VERSION": "api_version",
    "SF_CLIENT_ID": "client_id",
    "SF_CLIENT_SECRET": "client_secret",
    "SF_USERNAME": "username",
    "SF_PASSWORD": "password",
    "SF_SECURITY_TOKEN": "security_token",
}


@dataclass
class ClientConfig:
    """Configuration for a SalesforceClient"""
    # Connection
    instance_url: str = "https://login.salesforce.com"
    api_version: str = "59.0"
    client_id: str = ""
    client_secret: str = ""

    # Credentials used by login() when called without arguments
    username: Optional[str] = None
    password: str = ""
    security_token: str = ""

    # Behaviour
    return_type: str = "array"
    connect_timeout: float = 2.0
    read_timeout: float = 60.0
    get_attempts: int = 1


def config_from_dict(data: dict) -> ClientConfig:
    """Build a ClientConfig from the ``salesforce`` mapping, ignoring unknown keys"""
    known = {f.name for f in fields(ClientConfig)}
    values = {key: value for key, value in (data or {}).items() if key in known}

    if 'api_version' in values:
        values['api_version'] = str(values['api_version'])
    for key in ('connect_timeout', 'read_timeout'):
        if key in values:
            values[key] = float(values[key])
    if 'get_attempts' in values:
        values['get_attempts'] = int(values['get_attempts'])

    return ClientConfig(**values)


def load_config(config_path: Optional[str] = None) -> ClientConfig:
    """
    Load configuration from a YAML file, then apply environment overrides.

    With no path, configuration comes from the environment alone.
    """
    data = {}

    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path) as f:
            data = (yaml.safe_load(f) or {}).get("salesforce", {}) or {}

    for env_var, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            data[key] = value

    config = config_from_dict(data)
    logger.debug("config_loaded", path=config_path, instance_url=config.instance_url)
    return config
