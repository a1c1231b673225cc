"""
配置系统单元测试

测试配置模式验证、加载器功能、相对路径解析等核心功能。
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError
from ruamel.yaml import YAML

from rampack.config.loader import (
    ConfigError,
    ConfigLoader,
    ConfigValidationError,
    load_config,
    save_config,
    validate_config,
)
from rampack.config.schema import (
    CompressionAlgorithm,
    CompressionModel,
    ContentModel,
    ImageModel,
    RampackConfig,
)


def write_yaml(path: Path, data) -> Path:
    yaml = YAML(typ="safe")
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f)
    return path


class TestCompressionModel:
    """CompressionModel 测试"""

    def test_defaults(self):
        """测试默认值"""
        model = CompressionModel()
        assert model.algo == CompressionAlgorithm.ZSTD
        assert model.level is None
        assert model.effective_level() == 3

    def test_gzip_default_level(self):
        """测试 gzip 默认级别"""
        assert CompressionModel(algo="gzip").effective_level() == 9

    def test_level_ranges(self):
        """测试各算法的级别范围"""
        assert CompressionModel(algo="zstd", level=22).level == 22
        assert CompressionModel(algo="gzip", level=1).level == 1

        with pytest.raises(ValidationError):
            CompressionModel(algo="zstd", level=23)
        with pytest.raises(ValidationError):
            CompressionModel(algo="gzip", level=10)
        with pytest.raises(ValidationError):
            CompressionModel(algo="gzip", level=0)

    def test_none_without_level(self):
        """测试不压缩时不能指定级别"""
        assert CompressionModel(algo="none").effective_level() is None
        with pytest.raises(ValidationError):
            CompressionModel(algo="none", level=3)

    def test_unknown_algorithm(self):
        """测试未知算法"""
        with pytest.raises(ValidationError):
            CompressionModel(algo="lz4")


class TestImageModel:
    """ImageModel 测试"""

    def test_defaults(self):
        """测试默认值"""
        model = ImageModel()
        assert model.mode == 0o644
        assert model.library_dir == "/usr/lib"
        assert model.max_depth == 64

    def test_mode_parsing(self):
        """测试权限位的多种写法"""
        assert ImageModel(mode="0600").mode == 0o600
        assert ImageModel(mode="0o640").mode == 0o640
        assert ImageModel(mode="755").mode == 0o755
        assert ImageModel(mode=0o600).mode == 0o600

    def test_invalid_mode(self):
        """测试非法权限位"""
        for value in ["rwx", "0999", 0o10000, -1, True]:
            with pytest.raises(ValidationError):
                ImageModel(mode=value)

    def test_library_dir(self):
        """测试库目录必须是绝对路径并被规范化"""
        assert ImageModel(library_dir="/lib64/").library_dir == "/lib64"
        assert ImageModel(library_dir="/usr/lib/../lib64").library_dir == "/usr/lib64"
        with pytest.raises(ValidationError):
            ImageModel(library_dir="lib")

    def test_max_depth_bounds(self):
        """测试深度上限范围"""
        with pytest.raises(ValidationError):
            ImageModel(max_depth=0)
        with pytest.raises(ValidationError):
            ImageModel(max_depth=5000)


class TestContentModel:
    """ContentModel 测试"""

    def test_text_content(self):
        """测试文本内容"""
        item = ContentModel(dest="/init", mode="0755", text="#!/bin/sh\n")
        assert item.mode == 0o755
        assert item.read_content() == b"#!/bin/sh\n"

    def test_source_content(self, tmp_path):
        """测试主机文件内容"""
        source = tmp_path / "fstab"
        source.write_bytes(b"proc /proc proc defaults 0 0\n")

        item = ContentModel(dest="/etc/fstab", source=str(source))
        assert isinstance(item.source, Path)
        assert item.mode == 0o644
        assert item.read_content() == source.read_bytes()

    def test_exactly_one_payload(self):
        """测试 text 和 source 必须且只能指定一个"""
        with pytest.raises(ValidationError):
            ContentModel(dest="/init")
        with pytest.raises(ValidationError):
            ContentModel(dest="/init", text="x", source="/etc/hostname")

    def test_relative_dest(self):
        """测试目标路径必须是绝对路径"""
        with pytest.raises(ValidationError):
            ContentModel(dest="init", text="x")


class TestRampackConfig:
    """RampackConfig 测试"""

    def test_empty_config(self):
        """测试空配置使用全部默认值"""
        config = RampackConfig()
        assert config.files == []
        assert config.directories == []
        assert config.contents == []
        assert config.compression.algo == CompressionAlgorithm.ZSTD

    def test_files_deduplicated(self):
        """测试文件列表去重并去掉空白项"""
        config = RampackConfig(files=["/bin/sh", " /bin/sh ", "", "/bin/busybox"])
        assert config.files == ["/bin/sh", "/bin/busybox"]

    def test_relative_directory(self):
        """测试目录必须是绝对路径"""
        with pytest.raises(ValidationError):
            RampackConfig(directories=["proc"])

    def test_duplicate_content_dest(self):
        """测试内容条目目标路径重复"""
        with pytest.raises(ValidationError):
            RampackConfig(contents=[
                {"dest": "/init", "text": "a"},
                {"dest": "/./init", "text": "b"},
            ])

    def test_extra_field_forbidden(self):
        """测试未知字段"""
        with pytest.raises(ValidationError):
            RampackConfig.from_dict({"output": "initramfs.img"})

    def test_to_dict(self):
        """测试导出字典"""
        config = RampackConfig(
            image={"mode": 0o600},
            compression={"algo": "gzip", "level": 6},
            contents=[{"dest": "/init", "mode": 0o755, "text": "#!/bin/sh\n"}],
        )
        data = config.to_dict()

        assert data["image"]["mode"] == "0600"
        assert data["compression"] == {"algo": "gzip", "level": 6}
        assert data["contents"][0]["mode"] == "0755"
        assert "source" not in data["contents"][0]
        assert RampackConfig.from_dict(data) == config


class TestConfigLoader:
    """ConfigLoader 测试"""

    def test_load_from_file(self, tmp_path):
        """测试从文件加载"""
        path = write_yaml(tmp_path / "rampack.yaml", {
            "compression": {"algo": "gzip"},
            "files": ["/bin/busybox"],
            "directories": ["/proc", "/sys"],
            "contents": [{"dest": "/init", "mode": "0755", "text": "#!/bin/sh\n"}],
        })

        config = load_config(path)

        assert config.compression.algo == CompressionAlgorithm.GZIP
        assert config.files == ["/bin/busybox"]
        assert config.directories == ["/proc", "/sys"]
        assert config.contents[0].mode == 0o755

    def test_relative_paths(self, tmp_path):
        """测试相对路径相对于配置文件所在目录解析"""
        config_dir = tmp_path / "conf"
        config_dir.mkdir()
        path = write_yaml(config_dir / "rampack.yml", {
            "files": ["bin/tool", "/bin/sh"],
            "contents": [{"dest": "/etc/motd", "source": "motd.txt"}],
        })

        config = ConfigLoader().load_from_file(path)

        assert config.files == [str(config_dir.resolve() / "bin/tool"), "/bin/sh"]
        assert config.contents[0].source == config_dir.resolve() / "motd.txt"

    def test_load_from_dict_does_not_modify_input(self, tmp_path):
        """测试解析相对路径时不修改传入的字典"""
        data = {"files": ["tool"]}
        ConfigLoader().load_from_dict(data, base_path=tmp_path)
        assert data == {"files": ["tool"]}

    def test_missing_file(self, tmp_path):
        """测试文件不存在"""
        with pytest.raises(ConfigError, match="不存在"):
            load_config(tmp_path / "missing.yaml")

    def test_directory_path(self, tmp_path):
        """测试路径是目录"""
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_wrong_suffix(self, tmp_path):
        """测试扩展名不对"""
        path = tmp_path / "rampack.json"
        path.write_text("{}")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_empty_file(self, tmp_path):
        """测试空文件"""
        path = tmp_path / "rampack.yaml"
        path.write_text("")
        with pytest.raises(ConfigError, match="为空"):
            load_config(path)

    def test_non_mapping_root(self, tmp_path):
        """测试根级别不是字典"""
        path = tmp_path / "rampack.yaml"
        path.write_text("- /bin/sh\n- /bin/busybox\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_yaml_syntax_error(self, tmp_path):
        """测试 YAML 语法错误"""
        path = tmp_path / "rampack.yaml"
        path.write_text("files: [/bin/sh\n")
        with pytest.raises(ConfigError, match="YAML"):
            load_config(path)

    def test_validation_error(self, tmp_path):
        """测试验证错误携带详细信息"""
        path = write_yaml(tmp_path / "rampack.yaml", {
            "compression": {"algo": "gzip", "level": 42},
        })

        with pytest.raises(ConfigValidationError) as exc_info:
            load_config(path)

        error = exc_info.value
        assert error.errors
        assert "compression" in error.format_errors()
        assert json.loads(error.format_errors_json())

    def test_validate_config(self, tmp_path):
        """测试验证函数返回错误列表"""
        good = write_yaml(tmp_path / "good.yaml", {"directories": ["/dev"]})
        bad = write_yaml(tmp_path / "bad.yaml", {"directories": ["dev"]})

        assert validate_config(good) == []
        errors = validate_config(bad)
        assert len(errors) == 1
        assert "directories" in errors[0]["loc"]

        missing = validate_config(tmp_path / "missing.yaml")
        assert missing[0]["type"] == "config_error"

    def test_save_and_reload(self, tmp_path):
        """测试保存后重新加载得到相同配置"""
        config = RampackConfig(
            image={"mode": "0600", "library_dir": "/lib64"},
            files=["/bin/busybox"],
            directories=["/proc"],
            contents=[{"dest": "/init", "mode": "0755", "text": "#!/bin/sh\nexec /bin/sh\n"}],
        )
        path = tmp_path / "out" / "rampack.yaml"

        save_config(config, path)
        reloaded = load_config(path)

        assert reloaded == config
