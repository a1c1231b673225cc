"""
测试公共夹具

提供主机上真实的动态链接 ELF 文件，以及破坏其中某个段的工具。
"""

import io
import os
import sys
from pathlib import Path

import pytest
from elftools.elf.elffile import ELFFile

from rampack.build.elf import ELF_MAGIC, ElfError, parse_elf


HOST_ELF_CANDIDATES = ["/usr/bin/true", "/bin/true", sys.executable]


def _dynamic_elf(path: str):
    try:
        real = os.path.realpath(path)
        with open(real, "rb") as f:
            if f.read(4) != ELF_MAGIC:
                return None
        binary = parse_elf(Path(real).read_bytes(), name=real)
        if not binary.imported_libraries() or binary.interpreter() is None:
            return None
    except (OSError, ElfError):
        return None
    return Path(real)


@pytest.fixture(scope="session")
def host_elf() -> Path:
    """主机上一个带 .interp 和 DT_NEEDED 的 ELF 文件"""
    for candidate in HOST_ELF_CANDIDATES:
        path = _dynamic_elf(candidate)
        if path is not None:
            return path
    pytest.skip("主机上没有可用的动态链接 ELF 文件")


def corrupt_section_offset(content: bytes, section_name: str) -> bytes:
    """把指定段的 sh_offset 改到文件末尾之外，段不存在时跳过测试"""
    elf = ELFFile(io.BytesIO(content))
    index = next(
        (i for i, section in enumerate(elf.iter_sections()) if section.name == section_name),
        None,
    )
    if index is None:
        pytest.skip(f"样本中没有 {section_name} 段")

    # Elf64_Shdr 中 sh_offset 位于偏移 24，Elf32_Shdr 中位于偏移 16
    field, width = (24, 8) if elf.elfclass == 64 else (16, 4)
    start = elf['e_shoff'] + index * elf['e_shentsize'] + field
    order = "little" if elf.little_endian else "big"

    patched = bytearray(content)
    patched[start:start + width] = (0x7FFFFFFF).to_bytes(width, order)
    return bytes(patched)


@pytest.fixture
def corrupt_section():
    return corrupt_section_offset
