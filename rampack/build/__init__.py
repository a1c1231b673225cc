"""构建服务模块

提供 initramfs 镜像构建的核心功能。
"""

from .builder import Builder, BuildError, BuildResult
from .image import (
    Image,
    ImageError,
    ImageIOError,
    ImageClosedError,
    ImageState,
    ImageStats,
    DuplicateEntryError,
    InvalidPathError,
    DependencyDepthError,
)
from .resolver import DependencyResolver, DEFAULT_LIBRARY_DIR
from .elf import (
    ElfBinary,
    ElfError,
    NotABinaryError,
    MalformedBinaryError,
    DependencyExtractionError,
    parse_elf,
)
from .compressor import (
    CompressionStream,
    CompressorFactory,
    CompressionError,
    DecompressionError,
    decompress_image,
)
from .cpio import CpioWriter, CpioEntry, CpioError, iter_entries
from .publisher import PendingFile, PublishError

__all__ = [
    # 主构建器
    "Builder",
    "BuildError",
    "BuildResult",

    # 镜像
    "Image",
    "ImageError",
    "ImageIOError",
    "ImageClosedError",
    "ImageState",
    "ImageStats",
    "DuplicateEntryError",
    "InvalidPathError",
    "DependencyDepthError",

    # 依赖解析
    "DependencyResolver",
    "DEFAULT_LIBRARY_DIR",
    "ElfBinary",
    "ElfError",
    "NotABinaryError",
    "MalformedBinaryError",
    "DependencyExtractionError",
    "parse_elf",

    # 压缩与归档
    "CompressionStream",
    "CompressorFactory",
    "CompressionError",
    "DecompressionError",
    "decompress_image",
    "CpioWriter",
    "CpioEntry",
    "CpioError",
    "iter_entries",

    # 发布
    "PendingFile",
    "PublishError",
]
