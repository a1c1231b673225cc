"""
配置加载器

读取 YAML 格式的镜像配置，解析相对路径并交给 RampackConfig 验证。
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .schema import RampackConfig

CONFIG_SUFFIXES = (".yaml", ".yml")


class ConfigError(Exception):
    """配置错误基类"""
    pass


class ConfigValidationError(ConfigError):
    """配置验证错误，errors 为 pydantic 的错误列表"""

    def __init__(self, message: str, errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.errors = errors

    def format_errors(self) -> str:
        """每个错误一行：字段路径、错误信息以及输入值"""
        lines = []
        for item in self.errors:
            field = ".".join(str(part) for part in item.get("loc", ())) or "<根级别>"
            line = f"{field}: {item.get('msg', '未知错误')}"
            if "input" in item and not isinstance(item["input"], (dict, list)):
                line += f" (输入值: {item['input']!r})"
            lines.append(line)
        return "\n".join(lines)

    def format_errors_json(self) -> str:
        return json.dumps(self.errors, ensure_ascii=False, indent=2, default=str)


class ConfigLoader:
    """配置加载器"""

    def __init__(self):
        self.yaml = YAML(typ="safe")
        self.yaml.default_flow_style = False
        self.yaml.width = 4096

    def load_from_file(self, config_path: Union[str, Path]) -> RampackConfig:
        """从文件加载配置

        files 与 contents[].source 中的相对路径相对于配置文件所在目录。

        Raises:
            ConfigError: 文件无法读取或不是合法的 YAML 对象
            ConfigValidationError: 内容验证失败
        """
        config_path = Path(config_path)
        raw_data = self._read_yaml(config_path)
        return self.load_from_dict(raw_data, base_path=config_path.parent.resolve())

    def load_from_dict(self, data: Dict[str, Any], base_path: Optional[Path] = None) -> RampackConfig:
        """从字典加载配置，传入的字典不会被修改

        Raises:
            ConfigValidationError: 配置验证错误
        """
        if base_path:
            data = copy.deepcopy(data)
            self._resolve_relative_paths(data, base_path)

        try:
            return RampackConfig.from_dict(data)
        except ValidationError as e:
            raise ConfigValidationError(f"配置验证失败 ({e.error_count()} 个错误)", e.errors()) from e

    def save_to_file(self, config: RampackConfig, output_path: Union[str, Path]) -> None:
        """把配置写成 YAML 文件，必要时创建上级目录"""
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w", encoding="utf-8") as f:
                self.yaml.dump(config.to_dict(), f)
        except (OSError, YAMLError) as e:
            raise ConfigError(f"保存配置文件失败: {e}") from e

    def validate_file(self, config_path: Union[str, Path]) -> List[Dict[str, Any]]:
        """验证配置文件，返回错误列表（空列表表示验证通过）"""
        try:
            self.load_from_file(config_path)
        except ConfigValidationError as e:
            return e.errors
        except ConfigError as e:
            return [{"loc": [], "msg": str(e), "type": "config_error"}]
        return []

    def _read_yaml(self, config_path: Path) -> Dict[str, Any]:
        if not config_path.is_file():
            if config_path.exists():
                raise ConfigError(f"配置路径不是文件: {config_path}")
            raise ConfigError(f"配置文件不存在: {config_path}")

        if config_path.suffix.lower() not in CONFIG_SUFFIXES:
            raise ConfigError(f"配置文件必须是 .yaml 或 .yml 格式: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw_data = self.yaml.load(f)
        except YAMLError as e:
            raise ConfigError(f"YAML 解析错误: {e}") from e
        except OSError as e:
            raise ConfigError(f"文件读取错误: {e}") from e

        if raw_data is None:
            raise ConfigError(f"配置文件为空: {config_path}")
        if not isinstance(raw_data, dict):
            raise ConfigError(f"配置文件根级别必须是映射: {config_path}")
        return raw_data

    def _resolve_relative_paths(self, data: Dict[str, Any], base_path: Path) -> None:
        def resolve(value):
            if isinstance(value, str) and value and not Path(value).is_absolute():
                return str(base_path / value)
            return value

        if isinstance(data.get("files"), list):
            data["files"] = [resolve(item) for item in data["files"]]

        contents = data.get("contents")
        for item in contents if isinstance(contents, list) else []:
            if isinstance(item, dict) and "source" in item:
                item["source"] = resolve(item["source"])


# 全局加载器实例
config_loader = ConfigLoader()


def load_config(config_path: Union[str, Path]) -> RampackConfig:
    """便捷函数：加载配置文件"""
    return config_loader.load_from_file(config_path)


def validate_config(config_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """便捷函数：验证配置文件"""
    return config_loader.validate_file(config_path)


def save_config(config: RampackConfig, output_path: Union[str, Path]) -> None:
    """便捷函数：保存配置文件"""
    config_loader.save_to_file(config, output_path)
