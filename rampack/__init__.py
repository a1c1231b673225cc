"""
rampack - 自包含 initramfs 镜像构建工具

把主机文件打包为压缩的 cpio 镜像，并自动加入每个 ELF 文件运行时所需的共享库和动态链接器。
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config.schema import RampackConfig
from .build.builder import Builder
from .build.image import Image

__all__ = ["RampackConfig", "Builder", "Image", "__version__"]
