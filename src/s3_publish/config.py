# src/s3_publish/config.py
"""
Configuration for the s3-publish pipeline.

This module centralizes all configuration. Connection secrets are loaded
from environment variables, and a JSON file in the nested
``connect`` / ``setting`` / ``controls`` layout is accepted as well. Every
value is validated once, when the frozen dataclasses are built.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

from s3_publish.exceptions import ConfigurationError

PathTransform = Callable[[str], str]

DEFAULT_CHECKPOINT_INTERVAL: int = 10
CACHE_FILE_PREFIX: str = ".s3-publish-cache-"


def _get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable.

    Args:
        name (str): The name of the environment variable.
        default (str, optional): The default value if the variable is not set.

    Returns:
        str: The value of the environment variable.
    """
    value: Optional[str] = os.environ.get(name, default)
    if not value:
        raise ConfigurationError(f"Environment variable '{name}' must be set.")
    return value


def _identity(path: str) -> str:
    return path


@dataclass(frozen=True)
class ConnectConfig:
    """
    Represents the connection to an S3-compatible endpoint.

    Attributes:
        bucket (str): The bucket objects are published to.
        endpoint_url (str, optional): The S3 endpoint URL. AWS when unset.
        access_key_id (str, optional): The access key ID.
        secret_access_key (str, optional): The secret access key.
        region (str): The region name.
        max_attempts (int): Retry attempts handed to the botocore client.
    """

    bucket: str
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    region: str = "us-east-1"
    max_attempts: int = 5

    def __post_init__(self) -> None:
        if not self.bucket:
            raise ConfigurationError("Missing `connect.bucket` config value.")

    @classmethod
    def from_env(cls, bucket: Optional[str] = None) -> "ConnectConfig":
        """
        Builds the connection settings from ``PUBLISH_*`` environment variables.

        Args:
            bucket (str, optional): Overrides ``PUBLISH_BUCKET`` when given.

        Returns:
            ConnectConfig: The validated connection settings.
        """
        return cls(
            bucket=bucket or _get_env_var("PUBLISH_BUCKET"),
            endpoint_url=os.environ.get("PUBLISH_ENDPOINT_URL") or None,
            access_key_id=os.environ.get("PUBLISH_ACCESS_KEY_ID") or None,
            secret_access_key=os.environ.get("PUBLISH_SECRET_ACCESS_KEY") or None,
            region=os.environ.get("PUBLISH_REGION") or "us-east-1",
        )

    def as_boto_dict(self) -> Dict[str, str]:
        """
        Returns the configuration as a dictionary suitable for aiobotocore clients.

        Unset values are left out so botocore can fall back to its own
        credential chain.

        Returns:
            Dict[str, str]: A dictionary of client parameters.
        """
        params: Dict[str, Optional[str]] = {
            "endpoint_url": self.endpoint_url,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "region_name": self.region,
        }
        return {key: value for key, value in params.items() if value}


@dataclass(frozen=True)
class PublishSettings:
    """
    Defines how a publish run behaves.

    Attributes:
        root_dir (str): Remote prefix every destination key starts with.
        force (bool): Ignore the previous manifest and upload every file.
        no_clean (bool): Never delete remote objects missing locally.
        quiet (bool): Ask the backend for a quiet multi-delete response.
        simulate (bool): Skip all remote calls while still building a manifest.
        path_transform (PathTransform): Applied to each normalized path.
        checkpoint_interval (int): Save the manifest every N uploads.
    """

    root_dir: str
    force: bool = False
    no_clean: bool = False
    quiet: bool = True
    simulate: bool = False
    path_transform: PathTransform = _identity
    checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL

    def __post_init__(self) -> None:
        if not self.root_dir or not self.root_dir.strip("/"):
            raise ConfigurationError("Missing `setting.dir` config value.")
        if self.checkpoint_interval < 1:
            raise ConfigurationError("`checkpoint_interval` must be at least 1.")
        # Keys are always built as "<root>/<path>"
        object.__setattr__(self, "root_dir", self.root_dir.rstrip("/"))


@dataclass(frozen=True)
class Config:
    """
    Top-level configuration container for a publish run.

    Attributes:
        connect (ConnectConfig): Where objects are published.
        settings (PublishSettings): Behaviour of the run.
        headers (Dict[str, str]): Default headers, overridden per file.
        cache_file_name (str, optional): Manifest location. Derived from
            the bucket name when unset.
    """

    connect: ConnectConfig
    settings: PublishSettings
    headers: Dict[str, str] = field(default_factory=dict)
    cache_file_name: Optional[str] = None

    @property
    def cache_file(self) -> Path:
        """
        Resolve the manifest file path.

        Returns:
            Path: The configured file, or ``.s3-publish-cache-<bucket>``.
        """
        if self.cache_file_name:
            return Path(self.cache_file_name)
        return Path(f"{CACHE_FILE_PREFIX}{self.connect.bucket}")

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        cache_options: Optional[Mapping[str, Any]] = None,
    ) -> "Config":
        """
        Builds a configuration from the nested publisher layout.

        The layout is ``{"connect": {...}, "setting": {...}, "controls":
        {"headers": {...}}}``, with ``cacheFileName`` read from
        ``cache_options``.

        Args:
            data (Mapping[str, Any]): The nested configuration.
            cache_options (Mapping[str, Any], optional): Cache settings.

        Returns:
            Config: The validated configuration.
        """
        connect: Mapping[str, Any] = data.get("connect") or {}
        setting: Mapping[str, Any] = data.get("setting") or {}
        controls: Mapping[str, Any] = data.get("controls") or {}
        cache_options = cache_options or {}

        path_transform: Any = setting.get("fileName") or _identity
        if not callable(path_transform):
            raise ConfigurationError("`setting.fileName` must be callable.")

        return cls(
            connect=ConnectConfig(
                bucket=connect.get("bucket", ""),
                endpoint_url=connect.get("endpoint"),
                access_key_id=connect.get("accessKeyId"),
                secret_access_key=connect.get("accessKeySecret"),
                region=connect.get("region") or "us-east-1",
            ),
            settings=PublishSettings(
                root_dir=setting.get("dir", ""),
                force=bool(setting.get("force", False)),
                no_clean=bool(setting.get("noClean", False)),
                quiet=bool(setting.get("quiet", True)),
                simulate=bool(setting.get("simulate", False)),
                path_transform=path_transform,
            ),
            headers={
                str(k): str(v) for k, v in (controls.get("headers") or {}).items()
            },
            cache_file_name=cache_options.get("cacheFileName"),
        )


def load_config_file(
    path: Path, cache_options: Optional[Mapping[str, Any]] = None
) -> Config:
    """
    Reads a JSON configuration file in the nested publisher layout.

    Args:
        path (Path): The JSON file to read.
        cache_options (Mapping[str, Any], optional): Cache settings.

    Returns:
        Config: The validated configuration.
    """
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Could not read config file '{path}': {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file '{path}' must contain a JSON object.")
    return Config.from_mapping(data, cache_options)
