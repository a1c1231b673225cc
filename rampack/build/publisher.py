"""
输出文件的原子发布

镜像先写入目标目录下的临时文件，构建成功后用 os.replace 一次性替换目标；
失败时丢弃临时文件，目标路径保持原样。
"""

import os
import tempfile
from pathlib import Path
from typing import Union

from ..utils.logging import debug, LogStage


class PublishError(Exception):
    """发布相关错误"""
    pass


class PendingFile:
    """待发布的临时文件

    临时文件与目标文件位于同一目录，保证 os.replace 是同一文件系统内的原子重命名。
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        try:
            fd, temp_name = tempfile.mkstemp(
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            )
        except OSError as e:
            raise PublishError(f"无法创建临时文件 {self.path}: {e}") from e

        self.temp_path = Path(temp_name)
        self._fh = os.fdopen(fd, "wb")
        self._done = False

    @classmethod
    def open(cls, path: Union[str, Path]) -> "PendingFile":
        """在 path 所在目录创建临时文件"""
        return cls(path)

    @property
    def closed(self) -> bool:
        """是否已发布或已丢弃"""
        return self._done

    def chmod(self, mode: int) -> None:
        """设置临时文件（即最终文件）的权限位"""
        try:
            os.chmod(self._fh.fileno(), mode)
        except OSError as e:
            raise PublishError(f"无法设置权限 {oct(mode)}: {e}") from e

    def write(self, data: bytes) -> int:
        return self._fh.write(data)

    def flush(self) -> None:
        self._fh.flush()

    def publish(self) -> None:
        """把临时文件原子地替换到目标路径

        Raises:
            PublishError: 刷盘或重命名失败，此时目标路径不受影响
        """
        if self._done:
            raise PublishError(f"临时文件已经关闭: {self.temp_path}")

        try:
            self._fh.flush()
            os.fsync(self._fh.fileno())
            self._fh.close()
            os.replace(self.temp_path, self.path)
        except OSError as e:
            raise PublishError(f"发布 {self.path} 失败: {e}") from e
        self._done = True

    def discard(self) -> None:
        """丢弃临时文件，可重复调用；清理失败只记录日志，不抛出异常"""
        if self._done:
            return
        self._done = True

        try:
            self._fh.close()
        except OSError as e:
            debug(f"关闭临时文件失败: {e}", stage=LogStage.PUBLISH)
        try:
            self.temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            debug(f"删除临时文件 {self.temp_path} 失败: {e}", stage=LogStage.PUBLISH)
