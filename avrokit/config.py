"""avrokit configuration.

Configuration objects validate themselves on construction and on every
property assignment, raising :class:`ConfigurationException` for invalid
values. They can be built in code, from a dictionary or from YAML::

    codec:
      strict_booleans: true
      max_block_items: 1000
    datafile:
      codec: deflate
"""

import os
from typing import Any, Dict, Optional, Union

from avrokit import codecs
from avrokit.exceptions import ConfigurationException


SYNC_SIZE = 16


class CodecConfig:
    """Configuration of the binary encoder and decoder.

    Attributes:
        strict_booleans: Reject boolean bytes other than 0x00/0x01 instead
            of decoding them as ``True`` with a warning.
        max_block_items: Maximum number of items per array/map block when
            encoding. ``None`` writes each collection as a single block.
    """

    def __init__(
        self,
        strict_booleans: bool = False,
        max_block_items: Optional[int] = None,
    ):
        self._strict_booleans = strict_booleans
        self._max_block_items = max_block_items
        self._validate()

    def _validate(self) -> None:
        if not isinstance(self._strict_booleans, bool):
            raise ConfigurationException("strict_booleans must be a boolean")
        if self._max_block_items is not None:
            if isinstance(self._max_block_items, bool) or not isinstance(
                self._max_block_items, int
            ):
                raise ConfigurationException("max_block_items must be an integer")
            if self._max_block_items <= 0:
                raise ConfigurationException("max_block_items must be positive")

    @property
    def strict_booleans(self) -> bool:
        """Whether invalid boolean bytes raise instead of warn."""
        return self._strict_booleans

    @strict_booleans.setter
    def strict_booleans(self, value: bool) -> None:
        self._strict_booleans = value
        self._validate()

    @property
    def max_block_items(self) -> Optional[int]:
        """Item limit per collection block, or ``None`` for one block."""
        return self._max_block_items

    @max_block_items.setter
    def max_block_items(self, value: Optional[int]) -> None:
        self._max_block_items = value
        self._validate()

    @classmethod
    def from_dict(cls, data: dict) -> "CodecConfig":
        """Create CodecConfig from a dictionary."""
        return cls(
            strict_booleans=data.get("strict_booleans", False),
            max_block_items=data.get("max_block_items"),
        )

    def __repr__(self) -> str:
        return (
            f"CodecConfig(strict_booleans={self._strict_booleans}, "
            f"max_block_items={self._max_block_items})"
        )


class DataFileConfig:
    """Configuration of container file readers and writers.

    Attributes:
        codec: Name of the block compression codec used when writing.
        sync_marker: Fixed 16-byte sync marker. ``None`` draws a random one
            per file.
        prepare_schema: Whether the writer prepares the schema (plan-cached
            binding) before encoding.
        codec_config: Encoder/decoder settings.
    """

    def __init__(
        self,
        codec: str = codecs.NULL_CODEC,
        sync_marker: Optional[bytes] = None,
        prepare_schema: bool = True,
        codec_config: Optional[CodecConfig] = None,
    ):
        self._codec = codec
        self._sync_marker = sync_marker
        self._prepare_schema = prepare_schema
        self._codec_config = codec_config or CodecConfig()
        self._validate()

    def _validate(self) -> None:
        if not isinstance(self._codec, str) or not codecs.is_registered(self._codec):
            raise ConfigurationException(
                f"codec must be one of {codecs.codec_names()}, got {self._codec!r}"
            )
        if self._sync_marker is not None:
            if not isinstance(self._sync_marker, (bytes, bytearray)):
                raise ConfigurationException("sync_marker must be bytes")
            if len(self._sync_marker) != SYNC_SIZE:
                raise ConfigurationException(
                    f"sync_marker must be exactly {SYNC_SIZE} bytes"
                )

    @property
    def codec(self) -> str:
        return self._codec

    @codec.setter
    def codec(self, value: str) -> None:
        self._codec = value
        self._validate()

    @property
    def sync_marker(self) -> Optional[bytes]:
        return self._sync_marker

    @sync_marker.setter
    def sync_marker(self, value: Optional[bytes]) -> None:
        self._sync_marker = value
        self._validate()

    @property
    def prepare_schema(self) -> bool:
        return self._prepare_schema

    @prepare_schema.setter
    def prepare_schema(self, value: bool) -> None:
        self._prepare_schema = value

    @property
    def codec_config(self) -> CodecConfig:
        return self._codec_config

    @codec_config.setter
    def codec_config(self, value: CodecConfig) -> None:
        self._codec_config = value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DataFileConfig":
        """Create DataFileConfig from a dictionary.

        The dictionary may hold the datafile settings at the top level or
        under a ``datafile`` key, with encoder settings under ``codec`` (a
        mapping) or ``codec_config``. A sync marker may be given as bytes or
        as a hex string.
        """
        section = data.get("datafile", data)

        codec_section = section.get("codec_config", data.get("codec_config"))
        if codec_section is None and isinstance(data.get("codec"), dict):
            codec_section = data["codec"]
        codec_config = CodecConfig.from_dict(codec_section or {})

        codec_name = section.get("codec", codecs.NULL_CODEC)
        if isinstance(codec_name, dict):
            codec_name = codecs.NULL_CODEC

        return cls(
            codec=codec_name,
            sync_marker=_parse_sync_marker(section.get("sync_marker")),
            prepare_schema=section.get("prepare_schema", True),
            codec_config=codec_config,
        )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "DataFileConfig":
        """Load configuration from a YAML file.

        Args:
            yaml_path: Path to the YAML configuration file.

        Returns:
            DataFileConfig instance.

        Raises:
            ConfigurationException: If the file cannot be read or parsed.
        """
        yaml = _import_yaml()

        if not os.path.exists(yaml_path):
            raise ConfigurationException(f"Configuration file not found: {yaml_path}")

        try:
            with open(yaml_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}", cause=e)
        except OSError as e:
            raise ConfigurationException(f"Failed to read configuration file: {e}", cause=e)

        return cls._from_loaded(data)

    @classmethod
    def from_yaml_string(cls, yaml_content: str) -> "DataFileConfig":
        """Load configuration from a YAML string.

        Raises:
            ConfigurationException: If the YAML cannot be parsed.
        """
        yaml = _import_yaml()

        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationException(f"Failed to parse YAML: {e}", cause=e)

        return cls._from_loaded(data)

    @classmethod
    def _from_loaded(cls, data: Any) -> "DataFileConfig":
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationException("Configuration root must be a mapping")
        if "avrokit" in data:
            data = data["avrokit"] or {}
        return cls.from_dict(data)

    def __repr__(self) -> str:
        sync = self._sync_marker.hex() if self._sync_marker is not None else None
        return (
            f"DataFileConfig(codec={self._codec!r}, sync_marker={sync}, "
            f"prepare_schema={self._prepare_schema}, codec_config={self._codec_config!r})"
        )


def _parse_sync_marker(value: Union[None, str, bytes]) -> Optional[bytes]:
    if value is None or isinstance(value, (bytes, bytearray)):
        return value
    if isinstance(value, str):
        try:
            return bytes.fromhex(value)
        except ValueError as e:
            raise ConfigurationException(f"sync_marker is not valid hex: {value!r}", cause=e)
    raise ConfigurationException("sync_marker must be bytes or a hex string")


def _import_yaml():
    try:
        import yaml
    except ImportError as e:
        raise ConfigurationException(
            "PyYAML is required for YAML configuration loading. "
            "Install it with: pip install pyyaml",
            cause=e,
        )
    return yaml
