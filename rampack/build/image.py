"""
initramfs 镜像

Image 持有输出文件、压缩流和 cpio 写入器，并记录已经写入镜像的路径：

- 每个路径只写入一次；
- 任何条目写入之前，它的所有上级目录都已按从根到叶的顺序写入；
- 加入 ELF 文件时，其依赖的共享库和动态链接器被递归加入。

生命周期：BUILDING -> FINALIZED | DISCARDED。构建中途出错时调用方应调用 discard()，
目标路径保持原样；finalize() 成功后镜像被原子地发布到目标路径。
"""

import os
import posixpath
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import FrozenSet, Optional, Set, Union

from ..config.schema import CompressionAlgorithm, RampackConfig
from ..utils.logging import debug, info, warning, LogStage
from ..utils.paths import archive_name, format_size, normalize_image_path
from .compressor import CompressionError, CompressorFactory
from .cpio import CpioError, CpioWriter
from .elf import MINIMAL_ELF_SIZE, NotABinaryError, parse_elf
from .publisher import PendingFile, PublishError
from .resolver import DEFAULT_LIBRARY_DIR, DependencyResolver

DIRECTORY_MODE = 0o755
DEFAULT_IMAGE_MODE = 0o644
DEFAULT_MAX_DEPTH = 64

# 写入输出时可能出现的底层错误
_OUTPUT_ERRORS = (OSError, CpioError, CompressionError, PublishError)


class ImageError(Exception):
    """镜像构建错误基类"""
    pass


class ImageIOError(ImageError):
    """读取主机文件或写入镜像失败"""
    pass


class DuplicateEntryError(ImageError):
    """同一路径被写入两次"""

    def __init__(self, path: str):
        super().__init__(f"文件 {path} 已经加入镜像，不能重复添加")
        self.path = path


class ImageClosedError(ImageError):
    """镜像已发布或已丢弃"""
    pass


class InvalidPathError(ImageError):
    """镜像路径不合法"""
    pass


class DependencyDepthError(ImageError):
    """符号链接/依赖的递归层数超过上限"""
    pass


class ImageState(str, Enum):
    """镜像生命周期状态"""
    BUILDING = "building"
    FINALIZED = "finalized"
    DISCARDED = "discarded"


@dataclass
class ImageStats:
    """镜像统计信息"""
    directories: int = 0
    files: int = 0
    symlinks: int = 0
    binaries: int = 0
    content_bytes: int = 0

    @property
    def entries(self) -> int:
        return self.directories + self.files + self.symlinks


class Image:
    """正在构建的 initramfs 镜像"""

    def __init__(
        self,
        output_path: Union[str, Path],
        compression: CompressionAlgorithm = CompressionAlgorithm.ZSTD,
        level: Optional[int] = None,
        mode: int = DEFAULT_IMAGE_MODE,
        library_dir: str = DEFAULT_LIBRARY_DIR,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        """打开输出

        Args:
            output_path: 最终镜像路径，构建期间写入同目录下的临时文件
            compression: 压缩算法
            level: 压缩级别，None 表示算法默认值
            mode: 镜像文件的权限位
            library_dir: 相对库名的搜索目录
            max_depth: 符号链接/依赖递归的最大深度

        Raises:
            PublishError: 无法创建临时文件或设置权限
            CompressionError: 无法初始化压缩器
        """
        self.output_path = Path(output_path)
        self.max_depth = max_depth

        self._file = PendingFile.open(self.output_path)
        try:
            self._file.chmod(mode)
            self._compressor = CompressorFactory.create_stream(compression, self._file, level)
        except (PublishError, CompressionError):
            self._file.discard()
            raise

        self._out = CpioWriter(self._compressor)
        self._contains: Set[str] = set()
        self._resolver = DependencyResolver(self, library_dir)
        self._depth = 0
        self._state = ImageState.BUILDING
        self.stats = ImageStats()

        debug(f"临时输出: {self._file.temp_path}", stage=LogStage.INIT)

    @classmethod
    def from_config(cls, output_path: Union[str, Path], config: RampackConfig) -> "Image":
        """按配置创建镜像"""
        return cls(
            output_path,
            compression=config.compression.algo,
            level=config.compression.effective_level(),
            mode=config.image.mode,
            library_dir=config.image.library_dir,
            max_depth=config.image.max_depth,
        )

    @property
    def state(self) -> ImageState:
        return self._state

    @property
    def paths(self) -> FrozenSet[str]:
        """已写入镜像的全部路径"""
        return frozenset(self._contains)

    @property
    def library_dir(self) -> str:
        return self._resolver.library_dir

    def __contains__(self, path: str) -> bool:
        try:
            return normalize_image_path(path) in self._contains
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._contains)

    def _ensure_building(self) -> None:
        if self._state is not ImageState.BUILDING:
            raise ImageClosedError(f"镜像已{'发布' if self._state is ImageState.FINALIZED else '丢弃'}，不能继续写入")

    def _normalize(self, path: Union[str, Path]) -> str:
        try:
            return normalize_image_path(path)
        except ValueError as e:
            raise InvalidPathError(str(e)) from e

    def _write_entry(self, path: str, mode: int, content: bytes = b"") -> None:
        try:
            self._out.write_header(archive_name(path), mode, len(content))
            if content:
                self._out.write(content)
        except _OUTPUT_ERRORS as e:
            raise ImageIOError(f"写入条目 {path} 失败: {e}") from e

    def append_directory(self, path: Union[str, Path]) -> None:
        """加入目录及其所有上级目录，已存在时什么也不做"""
        self._ensure_building()
        path = self._normalize(path)
        if path in self._contains:
            return

        if path != "/":
            self.append_directory(posixpath.dirname(path))

        self._write_entry(path, stat.S_IFDIR | DIRECTORY_MODE)
        self._contains.add(path)
        self.stats.directories += 1
        debug(f"目录 {path}", stage=LogStage.DIR)

    def append_content(self, content: bytes, mode: int, dest: Union[str, Path]) -> None:
        """把字节内容作为普通文件写入 dest

        内容是 ELF 文件时，随后把它的运行时依赖也加入镜像。

        Raises:
            DuplicateEntryError: dest 已经在镜像中
            MalformedBinaryError: 内容以 ELF 魔数开头但结构损坏
            DependencyExtractionError: ELF 依赖无法读取
        """
        self._ensure_building()
        dest = self._normalize(dest)
        if dest in self._contains:
            raise DuplicateEntryError(dest)

        self.append_directory(posixpath.dirname(dest))

        self._write_entry(dest, stat.S_IFREG | stat.S_IMODE(mode), content)
        self._contains.add(dest)
        self.stats.files += 1
        self.stats.content_bytes += len(content)
        debug(f"文件 {dest} ({format_size(len(content))}, {oct(stat.S_IMODE(mode))})", stage=LogStage.FILE)

        if len(content) < MINIMAL_ELF_SIZE:
            return

        try:
            binary = parse_elf(content, name=dest)
        except NotABinaryError:
            return

        self.stats.binaries += 1
        debug(f"{dest} 是 ELF 文件，解析依赖", stage=LogStage.ELF)
        self._resolver.resolve_and_append(binary)

    def append_file(self, path: Union[str, Path]) -> None:
        """把主机上的文件加入镜像（镜像内路径与主机路径相同）

        符号链接按原样写入，随后递归加入它指向的目标；
        普通文件的内容交给 append_content，从而触发 ELF 依赖解析。
        路径已在镜像中时什么也不做。

        Raises:
            ImageIOError: 主机文件无法读取
            DependencyDepthError: 递归层数超过 max_depth
        """
        self._ensure_building()
        path = self._normalize(os.path.abspath(path))
        if path in self._contains:
            return

        if self._depth >= self.max_depth:
            raise DependencyDepthError(
                f"加入 {path} 时递归层数超过 {self.max_depth}，依赖图过深或存在环"
            )

        self._depth += 1
        try:
            self._append_host_path(path)
        finally:
            self._depth -= 1

    def _append_host_path(self, path: str) -> None:
        self.append_directory(posixpath.dirname(path))

        try:
            st = os.lstat(path)
        except OSError as e:
            raise ImageIOError(f"无法读取文件信息 {path}: {e}") from e

        if stat.S_ISLNK(st.st_mode):
            try:
                target = os.readlink(path)
            except OSError as e:
                raise ImageIOError(f"无法读取符号链接 {path}: {e}") from e

            self._write_entry(path, stat.S_IFLNK | (st.st_mode & 0o777), os.fsencode(target))
            self._contains.add(path)
            self.stats.symlinks += 1
            debug(f"符号链接 {path} -> {target}", stage=LogStage.LINK)

            # 相对目标相对于链接所在目录，而不是当前工作目录
            self.append_file(posixpath.join(posixpath.dirname(path), target))
        elif stat.S_ISDIR(st.st_mode):
            self.append_directory(path)
        elif stat.S_ISREG(st.st_mode):
            try:
                content = Path(path).read_bytes()
            except OSError as e:
                raise ImageIOError(f"无法读取文件 {path}: {e}") from e

            self.append_content(content, st.st_mode & 0o777, path)
        else:
            raise ImageError(f"不支持的文件类型: {path}")

    def finalize(self) -> None:
        """结束归档、结束压缩流并原子发布到目标路径

        任何一步失败都会抛出 ImageIOError，调用方随后应调用 discard()。
        """
        self._ensure_building()
        try:
            self._out.close()
            self._compressor.close()
            self._file.publish()
        except _OUTPUT_ERRORS as e:
            raise ImageIOError(f"发布镜像 {self.output_path} 失败: {e}") from e

        self._state = ImageState.FINALIZED
        info(f"镜像已发布: {self.output_path} ({self.stats.entries} 个条目)", stage=LogStage.PUBLISH)

    def discard(self) -> None:
        """丢弃未完成的镜像，目标路径保持原样；可重复调用"""
        if self._state is not ImageState.BUILDING:
            return
        self._state = ImageState.DISCARDED

        for closer in (self._out.close, self._compressor.close):
            try:
                closer()
            except _OUTPUT_ERRORS as e:
                debug(f"丢弃镜像时忽略关闭错误: {e}", stage=LogStage.PUBLISH)

        self._file.discard()
        warning(f"已丢弃未完成的镜像: {self.output_path}", stage=LogStage.PUBLISH)
