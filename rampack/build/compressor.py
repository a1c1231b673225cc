"""
压缩流抽象接口和实现

把写入的字节压缩后转交给下层输出（通常是待发布的临时文件）。
支持 Zstd、Gzip 以及不压缩三种方式。
"""

import gzip
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

import zstandard as zstd

from ..config.schema import CompressionAlgorithm, DEFAULT_LEVELS

ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
GZIP_MAGIC = b"\x1f\x8b"


class CompressionError(Exception):
    """压缩相关错误"""
    pass


class DecompressionError(Exception):
    """解压相关错误"""
    pass


class CompressionStream(ABC):
    """压缩流抽象基类

    close() 写出最后的压缩块和帧尾，但不关闭下层输出；重复调用无副作用。
    """

    def __init__(self, sink: BinaryIO):
        self._sink = sink
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        """写入未压缩的数据

        Raises:
            CompressionError: 流已关闭或压缩失败
        """
        if self._closed:
            raise CompressionError("压缩流已关闭")
        try:
            self._write(data)
        except (OSError, zstd.ZstdError) as e:
            raise CompressionError(f"{self.get_algorithm().value} 压缩写入失败: {e}") from e
        return len(data)

    def close(self) -> None:
        """结束压缩流"""
        if self._closed:
            return
        self._closed = True
        try:
            self._close()
        except (OSError, zstd.ZstdError) as e:
            raise CompressionError(f"{self.get_algorithm().value} 压缩流关闭失败: {e}") from e

    @abstractmethod
    def _write(self, data: bytes) -> None:
        pass

    @abstractmethod
    def _close(self) -> None:
        pass

    @abstractmethod
    def get_algorithm(self) -> CompressionAlgorithm:
        """获取压缩算法"""
        pass


class ZstdStream(CompressionStream):
    """Zstd 压缩流"""

    def __init__(self, sink: BinaryIO, level: int = DEFAULT_LEVELS[CompressionAlgorithm.ZSTD]):
        super().__init__(sink)
        self.level = level
        try:
            self._cctx = zstd.ZstdCompressor(level=level)
            self._writer = self._cctx.stream_writer(sink, closefd=False)
        except zstd.ZstdError as e:
            raise CompressionError(f"初始化 Zstd 压缩器失败: {e}") from e

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.ZSTD

    def _write(self, data: bytes) -> None:
        self._writer.write(data)

    def _close(self) -> None:
        self._writer.close()


class GzipStream(CompressionStream):
    """Gzip 压缩流"""

    def __init__(self, sink: BinaryIO, level: int = DEFAULT_LEVELS[CompressionAlgorithm.GZIP]):
        super().__init__(sink)
        self.level = min(9, max(1, level))
        # mtime 固定为 0，相同输入得到相同镜像
        self._writer = gzip.GzipFile(fileobj=sink, mode="wb", compresslevel=self.level, mtime=0)

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.GZIP

    def _write(self, data: bytes) -> None:
        self._writer.write(data)

    def _close(self) -> None:
        self._writer.close()


class PlainStream(CompressionStream):
    """不压缩，直接透传"""

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.NONE

    def _write(self, data: bytes) -> None:
        self._sink.write(data)

    def _close(self) -> None:
        if hasattr(self._sink, "flush"):
            self._sink.flush()


class CompressorFactory:
    """压缩流工厂"""

    @staticmethod
    def create_stream(
        algorithm: CompressionAlgorithm,
        sink: BinaryIO,
        level: Optional[int] = None,
    ) -> CompressionStream:
        """创建包装 sink 的压缩流

        Args:
            algorithm: 压缩算法
            sink: 下层输出
            level: 压缩级别，None 表示算法默认值

        Returns:
            CompressionStream: 压缩流实例

        Raises:
            CompressionError: 创建失败
        """
        if algorithm == CompressionAlgorithm.ZSTD:
            return ZstdStream(sink, level if level is not None else DEFAULT_LEVELS[algorithm])
        elif algorithm == CompressionAlgorithm.GZIP:
            return GzipStream(sink, level if level is not None else DEFAULT_LEVELS[algorithm])
        elif algorithm == CompressionAlgorithm.NONE:
            return PlainStream(sink)
        else:
            raise CompressionError(f"不支持的压缩算法: {algorithm}")

    @staticmethod
    def get_available_algorithms() -> list[CompressionAlgorithm]:
        """获取可用的压缩算法列表"""
        return [CompressionAlgorithm.ZSTD, CompressionAlgorithm.GZIP, CompressionAlgorithm.NONE]


def detect_algorithm(data: bytes) -> CompressionAlgorithm:
    """根据魔数判断镜像的压缩算法"""
    if data.startswith(ZSTD_MAGIC):
        return CompressionAlgorithm.ZSTD
    if data.startswith(GZIP_MAGIC):
        return CompressionAlgorithm.GZIP
    return CompressionAlgorithm.NONE


def decompress_image(data: bytes) -> bytes:
    """解压整个镜像

    Args:
        data: 镜像文件内容

    Returns:
        bytes: 解压后的 cpio 数据

    Raises:
        DecompressionError: 解压失败
    """
    algorithm = detect_algorithm(data)
    try:
        if algorithm == CompressionAlgorithm.ZSTD:
            # 流式写入的帧不带内容大小，只能用 stream_reader 读取
            with zstd.ZstdDecompressor().stream_reader(data, read_across_frames=True) as reader:
                return reader.read()
        if algorithm == CompressionAlgorithm.GZIP:
            return gzip.decompress(data)
    except (zstd.ZstdError, OSError, EOFError) as e:
        raise DecompressionError(f"{algorithm.value} 解压失败: {e}") from e
    return data
