"""Unit tests for avrokit.config module."""

import os
import tempfile

import pytest

from avrokit.config import SYNC_SIZE, CodecConfig, DataFileConfig
from avrokit.exceptions import ConfigurationException


class TestCodecConfig:
    """Tests for CodecConfig class."""

    def test_defaults(self):
        config = CodecConfig()
        assert config.strict_booleans is False
        assert config.max_block_items is None

    def test_custom_values(self):
        config = CodecConfig(strict_booleans=True, max_block_items=100)
        assert config.strict_booleans is True
        assert config.max_block_items == 100

    def test_strict_booleans_must_be_bool(self):
        with pytest.raises(ConfigurationException) as exc_info:
            CodecConfig(strict_booleans="yes")
        assert "strict_booleans" in str(exc_info.value)

    @pytest.mark.parametrize("value", [0, -5])
    def test_max_block_items_must_be_positive(self, value):
        with pytest.raises(ConfigurationException) as exc_info:
            CodecConfig(max_block_items=value)
        assert "positive" in str(exc_info.value)

    @pytest.mark.parametrize("value", [True, 1.5, "10"])
    def test_max_block_items_must_be_int(self, value):
        with pytest.raises(ConfigurationException):
            CodecConfig(max_block_items=value)

    def test_setter_validates(self):
        config = CodecConfig()
        config.max_block_items = 5
        assert config.max_block_items == 5
        with pytest.raises(ConfigurationException):
            config.max_block_items = 0

    def test_from_dict(self):
        config = CodecConfig.from_dict({"strict_booleans": True, "max_block_items": 10})
        assert config.strict_booleans is True
        assert config.max_block_items == 10

    def test_from_empty_dict(self):
        config = CodecConfig.from_dict({})
        assert config.strict_booleans is False

    def test_repr(self):
        assert "max_block_items=3" in repr(CodecConfig(max_block_items=3))


class TestDataFileConfig:
    """Tests for DataFileConfig class."""

    def test_defaults(self):
        config = DataFileConfig()
        assert config.codec == "null"
        assert config.sync_marker is None
        assert config.prepare_schema is True
        assert isinstance(config.codec_config, CodecConfig)

    def test_deflate_codec(self):
        assert DataFileConfig(codec="deflate").codec == "deflate"

    def test_unknown_codec(self):
        with pytest.raises(ConfigurationException) as exc_info:
            DataFileConfig(codec="snappy")
        assert "snappy" in str(exc_info.value)

    def test_sync_marker_size(self):
        with pytest.raises(ConfigurationException) as exc_info:
            DataFileConfig(sync_marker=b"short")
        assert str(SYNC_SIZE) in str(exc_info.value)

    def test_sync_marker_type(self):
        with pytest.raises(ConfigurationException):
            DataFileConfig(sync_marker="x" * 16)

    def test_codec_setter_validates(self):
        config = DataFileConfig()
        with pytest.raises(ConfigurationException):
            config.codec = "lz4"

    def test_from_dict_flat(self):
        config = DataFileConfig.from_dict({
            "codec": "deflate",
            "sync_marker": "00" * 16,
            "prepare_schema": False,
            "codec_config": {"max_block_items": 50},
        })
        assert config.codec == "deflate"
        assert config.sync_marker == b"\x00" * 16
        assert config.prepare_schema is False
        assert config.codec_config.max_block_items == 50

    def test_from_dict_sections(self):
        config = DataFileConfig.from_dict({
            "codec": {"strict_booleans": True},
            "datafile": {"codec": "deflate"},
        })
        assert config.codec == "deflate"
        assert config.codec_config.strict_booleans is True

    def test_from_dict_invalid_hex(self):
        with pytest.raises(ConfigurationException) as exc_info:
            DataFileConfig.from_dict({"sync_marker": "not hex"})
        assert "hex" in str(exc_info.value)

    def test_from_yaml_file_not_found(self):
        with pytest.raises(ConfigurationException) as exc_info:
            DataFileConfig.from_yaml("/nonexistent/path.yml")
        assert "not found" in str(exc_info.value)

    def test_from_yaml_success(self):
        yaml_content = """
codec:
  strict_booleans: true
  max_block_items: 1000
datafile:
  codec: deflate
"""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            f.write(yaml_content)
            f.flush()

            try:
                config = DataFileConfig.from_yaml(f.name)
                assert config.codec == "deflate"
                assert config.codec_config.strict_booleans is True
                assert config.codec_config.max_block_items == 1000
            finally:
                os.unlink(f.name)

    def test_from_yaml_with_avrokit_root(self):
        yaml_content = """
avrokit:
  datafile:
    codec: deflate
"""
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            f.write(yaml_content)
            f.flush()

            try:
                config = DataFileConfig.from_yaml(f.name)
                assert config.codec == "deflate"
            finally:
                os.unlink(f.name)

    def test_from_yaml_empty_file(self):
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False) as f:
            f.write("")
            f.flush()

            try:
                config = DataFileConfig.from_yaml(f.name)
                assert config.codec == "null"
            finally:
                os.unlink(f.name)

    def test_from_yaml_string(self):
        config = DataFileConfig.from_yaml_string("codec: deflate\nprepare_schema: false\n")
        assert config.codec == "deflate"
        assert config.prepare_schema is False

    def test_from_yaml_string_invalid(self):
        with pytest.raises(ConfigurationException) as exc_info:
            DataFileConfig.from_yaml_string("codec: [unclosed")
        assert "YAML" in str(exc_info.value)

    def test_from_yaml_string_non_mapping_root(self):
        with pytest.raises(ConfigurationException) as exc_info:
            DataFileConfig.from_yaml_string("- a\n- b\n")
        assert "mapping" in str(exc_info.value)

    def test_repr(self):
        config = DataFileConfig(sync_marker=b"\x01" * 16)
        assert "01" * 16 in repr(config)
