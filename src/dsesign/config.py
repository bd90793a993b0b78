"""Configuration loading from JSON files and the environment."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError
from .jwt_grant import JWTConfig
from .oauth2 import OAuth2Credential, OAuth2Config, token_credential

logger = logging.getLogger(__name__)

ENV_TOKEN = "DOCUSIGN_TOKEN"
ENV_ACCOUNT_ID = "DOCUSIGN_ACCOUNT_ID"
ENV_IS_DEMO = "DOCUSIGN_IS_DEMO"
ENV_JWT_CONFIG = "DOCUSIGN_JWT_CONFIG"
ENV_JWT_API_USER = "DOCUSIGN_JWT_API_USER"

_TRUE_VALUES = {"1", "true", "yes", "on"}

M = TypeVar("M", bound=BaseModel)


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to load config from {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return data


def _validate(model: Type[M], data: Dict[str, Any], path: Path) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config in {path}: {e}")


def load_oauth2_config(path: Union[str, Path]) -> OAuth2Config:
    """Load an OAuth2Config from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the content is not a valid configuration
    """
    path = Path(path)
    return _validate(OAuth2Config, _read_json(path), path)


def load_jwt_config(path: Union[str, Path]) -> JWTConfig:
    """Load a JWTConfig from a JSON file.

    ``private_key_file`` may name a PEM file instead of an inline
    ``private_key``; a relative name is resolved against the config file's
    directory.

    Raises:
        FileNotFoundError: If the config or key file does not exist
        ConfigurationError: If the content is not a valid configuration
    """
    path = Path(path)
    data = _read_json(path)
    key_file = data.pop("private_key_file", None)
    if key_file and not data.get("private_key"):
        key_path = Path(key_file)
        if not key_path.is_absolute():
            key_path = path.parent / key_path
        if not key_path.exists():
            raise FileNotFoundError(f"Private key file not found: {key_path}")
        data["private_key"] = key_path.read_text()
    return _validate(JWTConfig, data, path)


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def credential_from_env(
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[OAuth2Credential]:
    """Build a credential from environment variables.

    ``DOCUSIGN_TOKEN`` selects a fixed-token credential (with optional
    ``DOCUSIGN_ACCOUNT_ID`` and ``DOCUSIGN_IS_DEMO``).  Otherwise
    ``DOCUSIGN_JWT_CONFIG`` names a JWT config file used with
    ``DOCUSIGN_JWT_API_USER``.

    Returns:
        Credential, or None when neither is configured

    Raises:
        ConfigurationError: If the JWT config is set without an API user
    """
    env = os.environ if environ is None else environ

    access_token = env.get(ENV_TOKEN)
    if access_token:
        logger.debug("Using DocuSign access token from environment")
        return token_credential(
            access_token,
            is_demo=_is_true(env.get(ENV_IS_DEMO)),
            account_id=env.get(ENV_ACCOUNT_ID, ""),
        )

    jwt_config_path = env.get(ENV_JWT_CONFIG)
    if jwt_config_path:
        api_user = env.get(ENV_JWT_API_USER)
        if not api_user:
            raise ConfigurationError(
                f"{ENV_JWT_CONFIG} is set but {ENV_JWT_API_USER} is missing"
            )
        config = load_jwt_config(jwt_config_path)
        if env.get(ENV_ACCOUNT_ID):
            config = config.model_copy(update={"account_id": env[ENV_ACCOUNT_ID]})
        logger.debug(f"Using DocuSign JWT config from {jwt_config_path}")
        return config.credential(api_user)

    return None
