"""
配置 Schema 定义

使用 Pydantic 定义 initramfs 镜像的 YAML 配置模型，支持验证和类型检查。
"""

from __future__ import annotations

import posixpath
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class CompressionAlgorithm(str, Enum):
    """压缩算法枚举"""
    ZSTD = "zstd"
    GZIP = "gzip"
    NONE = "none"


# 各算法允许的压缩级别范围
LEVEL_RANGES = {
    CompressionAlgorithm.ZSTD: (1, 22),
    CompressionAlgorithm.GZIP: (1, 9),
}

# 未指定级别时使用的默认值
DEFAULT_LEVELS = {
    CompressionAlgorithm.ZSTD: 3,
    CompressionAlgorithm.GZIP: 9,
}


def _parse_mode(v: Union[int, str]) -> int:
    """把整数或八进制字符串（"0644"、"0o644"、"644"）解析为权限位"""
    if isinstance(v, bool):
        raise ValueError("权限位必须是整数或八进制字符串")
    if isinstance(v, str):
        text = v.strip().lower()
        if text.startswith("0o"):
            text = text[2:]
        try:
            v = int(text, 8)
        except ValueError:
            raise ValueError(f"无法解析的八进制权限位: {v!r}")
    if not 0 <= v <= 0o7777:
        raise ValueError(f"权限位超出范围: {oct(v)}")
    return v


def _check_image_path(v: str) -> str:
    v = v.strip()
    if not posixpath.isabs(v):
        raise ValueError(f"镜像内路径必须是绝对路径: {v}")
    return v


class CompressionModel(BaseModel):
    """压缩配置模型"""
    algo: CompressionAlgorithm = Field(
        CompressionAlgorithm.ZSTD,
        description="压缩算法"
    )
    level: Optional[int] = Field(
        None,
        description="压缩级别（未指定时使用算法默认值）"
    )

    @model_validator(mode='after')
    def validate_compression_level(self) -> 'CompressionModel':
        """验证压缩级别对算法的适用性"""
        if self.level is None:
            return self

        if self.algo == CompressionAlgorithm.NONE:
            raise ValueError("不压缩时不能指定压缩级别")

        low, high = LEVEL_RANGES[self.algo]
        if not low <= self.level <= high:
            raise ValueError(f"{self.algo.value} 压缩级别必须在 {low}-{high} 之间")
        return self

    def effective_level(self) -> Optional[int]:
        """实际使用的压缩级别"""
        if self.level is not None:
            return self.level
        return DEFAULT_LEVELS.get(self.algo)


class ImageModel(BaseModel):
    """镜像配置模型"""
    mode: int = Field(0o644, description="输出镜像文件的权限位")
    library_dir: str = Field("/usr/lib", description="相对库名的默认搜索目录")
    max_depth: int = Field(
        64,
        description="符号链接/依赖递归的最大深度",
        ge=1,
        le=4096
    )

    @field_validator('mode', mode='before')
    @classmethod
    def validate_mode(cls, v: Union[int, str]) -> int:
        return _parse_mode(v)

    @field_validator('library_dir')
    @classmethod
    def validate_library_dir(cls, v: str) -> str:
        """验证库目录"""
        return posixpath.normpath(_check_image_path(v))


class ContentModel(BaseModel):
    """直接写入镜像的内容条目

    ``text`` 与 ``source`` 二选一：前者为字面文本，后者为主机上的文件，
    内容被放到镜像中的 ``dest`` 路径下。
    """
    dest: str = Field(..., description="镜像内目标路径", min_length=1)
    mode: int = Field(0o644, description="权限位")
    text: Optional[str] = Field(None, description="字面文本内容")
    source: Optional[Union[str, Path]] = Field(None, description="主机上的源文件")

    @field_validator('dest')
    @classmethod
    def validate_dest(cls, v: str) -> str:
        return _check_image_path(v)

    @field_validator('mode', mode='before')
    @classmethod
    def validate_mode(cls, v: Union[int, str]) -> int:
        return _parse_mode(v)

    @field_validator('source')
    @classmethod
    def validate_source(cls, v: Optional[Union[str, Path]]) -> Optional[Path]:
        if v is None:
            return None
        return Path(v)

    @model_validator(mode='after')
    def validate_payload(self) -> 'ContentModel':
        """text 与 source 必须且只能指定一个"""
        if (self.text is None) == (self.source is None):
            raise ValueError("text 和 source 必须且只能指定一个")
        return self

    def read_content(self) -> bytes:
        """读取条目的字节内容"""
        if self.text is not None:
            return self.text.encode("utf-8")
        return Path(self.source).read_bytes()


class ConfigModel(BaseModel):
    """配置元信息模型"""
    version: int = Field(1, description="配置 schema 版本", ge=1)

    @field_validator('version')
    @classmethod
    def validate_config_version(cls, v: int) -> int:
        """验证配置版本"""
        SUPPORTED_VERSIONS = [1]
        if v not in SUPPORTED_VERSIONS:
            raise ValueError(f"不支持的配置版本 {v}，支持的版本: {SUPPORTED_VERSIONS}")
        return v


class RampackConfig(BaseModel):
    """rampack 主配置模型

    整个配置文件的根模型。``files`` 中的主机文件会连同其符号链接目标
    和 ELF 运行时依赖一起加入镜像。
    """

    config: ConfigModel = Field(default_factory=ConfigModel, description="配置元信息")
    image: ImageModel = Field(default_factory=ImageModel, description="镜像配置")
    compression: CompressionModel = Field(default_factory=CompressionModel, description="压缩配置")

    files: List[str] = Field(default_factory=list, description="要加入镜像的主机文件")
    directories: List[str] = Field(default_factory=list, description="要创建的空目录")
    contents: List[ContentModel] = Field(default_factory=list, description="直接写入的内容条目")

    model_config = {
        "extra": "forbid",
        "validate_assignment": True,
        "str_strip_whitespace": True,
    }

    @field_validator('files')
    @classmethod
    def validate_files(cls, v: List[str]) -> List[str]:
        """去除空白项和重复项，保持顺序"""
        cleaned = []
        for path in v:
            path = path.strip()
            if path and path not in cleaned:
                cleaned.append(path)
        return cleaned

    @field_validator('directories')
    @classmethod
    def validate_directories(cls, v: List[str]) -> List[str]:
        return [_check_image_path(d) for d in v]

    @model_validator(mode='after')
    def validate_content_targets(self) -> 'RampackConfig':
        """同一个目标路径不能出现两次"""
        seen = set()
        for item in self.contents:
            dest = posixpath.normpath(item.dest)
            if dest in seen:
                raise ValueError(f"contents 中目标路径重复: {item.dest}")
            seen.add(dest)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        data = self.model_dump(exclude_none=True)

        data['image']['mode'] = f"0{data['image']['mode']:o}"
        for item in data.get('contents', []):
            item['mode'] = f"0{item['mode']:o}"

        def convert_values(obj):
            if isinstance(obj, dict):
                return {k: convert_values(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_values(item) for item in obj]
            elif isinstance(obj, (Path, Enum)):
                return obj.value if isinstance(obj, Enum) else str(obj)
            else:
                return obj

        return convert_values(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RampackConfig':
        """从字典创建配置实例"""
        return cls.model_validate(data)
