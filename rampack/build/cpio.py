"""
cpio "newc" 归档编码

内核 initramfs 使用的 SVR4 newc 格式：每个条目由 110 字节的 ASCII 十六进制头、
以 NUL 结尾的文件名和文件内容组成，名字和内容各自按 4 字节对齐，
归档以名为 TRAILER!!! 的空条目结束。

写入器不做排序也不去重，条目按调用顺序写出。
"""

import stat
from dataclasses import dataclass
from typing import BinaryIO, Iterator

NEWC_MAGIC = b"070701"
HEADER_SIZE = 110
TRAILER_NAME = "TRAILER!!!"


class CpioError(Exception):
    """cpio 编解码错误"""
    pass


def _pad(length: int) -> int:
    return (-length) % 4


def encode_header(
    *,
    ino: int,
    mode: int,
    nlink: int,
    filesize: int,
    namesize: int,
    uid: int = 0,
    gid: int = 0,
    mtime: int = 0,
) -> bytes:
    """编码一个 newc 条目头"""
    fields = [
        ino,
        mode,
        uid,
        gid,
        nlink,
        mtime,
        filesize,
        0,  # devmajor
        0,  # devminor
        0,  # rdevmajor
        0,  # rdevminor
        namesize,
        0,  # check
    ]
    for value in fields:
        if not 0 <= value <= 0xFFFFFFFF:
            raise CpioError(f"头字段超出 32 位范围: {value}")
    return NEWC_MAGIC + "".join(f"{value:08x}" for value in fields).encode("ascii")


class CpioWriter:
    """newc 格式写入器

    用法与 tarfile 类似：先 write_header 声明条目，再用 write 写入恰好 size 字节的内容。
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._next_ino = 1
        self._remaining = 0
        self._pending_pad = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _emit(self, data: bytes) -> None:
        self._stream.write(data)

    def _finish_entry(self) -> None:
        if self._remaining:
            raise CpioError(f"上一个条目还有 {self._remaining} 字节未写入")
        if self._pending_pad:
            self._emit(b"\0" * self._pending_pad)
            self._pending_pad = 0

    def write_header(self, name: str, mode: int, size: int = 0) -> None:
        """写入条目头

        Args:
            name: 条目名（不带开头的 /）
            mode: 文件类型位与权限位
            size: 之后要写入的内容长度
        """
        if self._closed:
            raise CpioError("归档已关闭")
        if stat.S_ISDIR(mode) and size:
            raise CpioError(f"目录条目不能有内容: {name}")

        self._finish_entry()

        name_bytes = name.encode("utf-8") + b"\0"
        nlink = 2 if stat.S_ISDIR(mode) else 1
        header = encode_header(
            ino=self._next_ino,
            mode=mode,
            nlink=nlink,
            filesize=size,
            namesize=len(name_bytes),
        )
        self._next_ino += 1

        self._emit(header + name_bytes + b"\0" * _pad(HEADER_SIZE + len(name_bytes)))
        self._remaining = size
        self._pending_pad = _pad(size)

    def write(self, data: bytes) -> int:
        """写入当前条目的内容"""
        if self._closed:
            raise CpioError("归档已关闭")
        if len(data) > self._remaining:
            raise CpioError(f"写入内容超过条目声明的大小（剩余 {self._remaining} 字节）")
        self._emit(data)
        self._remaining -= len(data)
        return len(data)

    def close(self) -> None:
        """写入结束条目，可重复调用"""
        if self._closed:
            return
        self._finish_entry()
        self.write_header(TRAILER_NAME, 0, 0)
        self._finish_entry()
        self._closed = True


@dataclass
class CpioEntry:
    """读取出的归档条目"""
    name: str
    mode: int
    data: bytes
    ino: int = 0
    nlink: int = 0

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_file(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def permissions(self) -> int:
        return stat.S_IMODE(self.mode)

    @property
    def kind(self) -> str:
        if self.is_dir:
            return "dir"
        if self.is_symlink:
            return "symlink"
        if self.is_file:
            return "file"
        return "other"


def iter_entries(data: bytes) -> Iterator[CpioEntry]:
    """按归档顺序逐个读出条目（不含结束条目）

    Raises:
        CpioError: 数据不是合法的 newc 归档
    """
    offset = 0
    while True:
        header = data[offset:offset + HEADER_SIZE]
        if len(header) < HEADER_SIZE:
            raise CpioError(f"偏移 {offset} 处的条目头不完整")
        if header[:6] != NEWC_MAGIC:
            raise CpioError(f"偏移 {offset} 处的魔数错误: {header[:6]!r}")

        try:
            fields = [int(header[6 + i * 8:14 + i * 8], 16) for i in range(13)]
        except ValueError as e:
            raise CpioError(f"偏移 {offset} 处的条目头无法解析: {e}") from e
        ino, mode, _, _, nlink, _, filesize = fields[:7]
        namesize = fields[11]

        name_start = offset + HEADER_SIZE
        name_end = name_start + namesize
        if namesize == 0 or name_end > len(data):
            raise CpioError(f"偏移 {offset} 处的文件名越界")
        name = data[name_start:name_end - 1].decode("utf-8")

        data_start = name_end + _pad(HEADER_SIZE + namesize)
        data_end = data_start + filesize
        if data_end > len(data):
            raise CpioError(f"条目 {name} 的内容越界")

        if name == TRAILER_NAME:
            return

        yield CpioEntry(name=name, mode=mode, data=data[data_start:data_end], ino=ino, nlink=nlink)
        offset = data_end + _pad(filesize)
