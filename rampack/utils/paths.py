"""
路径工具

镜像内路径的规范化、输出目录准备和大小格式化。
"""

import os
import posixpath
from pathlib import Path
from typing import Union

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def ensure_directory(path: Union[str, Path]) -> Path:
    """确保目录存在，返回目录路径"""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def normalize_image_path(path: Union[str, Path]) -> str:
    """规范化镜像内的路径

    折叠多余的分隔符、``.`` 和 ``..``。只接受绝对路径。

    Args:
        path: 镜像内路径

    Returns:
        str: 规范化后的绝对路径

    Raises:
        ValueError: 路径不是绝对路径
    """
    path = os.fspath(path)
    if not posixpath.isabs(path):
        raise ValueError(f"镜像路径必须是绝对路径: {path}")

    normalized = posixpath.normpath(path)
    # POSIX 保留开头的 "//"，镜像里没有这种区分
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def archive_name(path: str) -> str:
    """镜像路径对应的归档条目名（去掉开头的 /，根目录记为 "."）"""
    name = path.lstrip("/")
    return name or "."


def format_size(size_bytes: int) -> str:
    """把字节数格式化为 1024 进制的可读大小"""
    size = float(size_bytes)
    for unit in _SIZE_UNITS[:-1]:
        if size < 1024.0:
            break
        size /= 1024.0
    else:
        unit = _SIZE_UNITS[-1]

    if unit == "B":
        return f"{int(size)} B"
    return f"{size:.1f} {unit}"
