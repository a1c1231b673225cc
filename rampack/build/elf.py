"""
ELF 文件读取

用 pyelftools 解析加入镜像的文件，提取其运行时依赖：
DT_NEEDED 声明的共享库以及 .interp 段中的动态链接器路径。

解析结果区分两种失败：开头不是 ELF 魔数（不是二进制，正常情况），
以及魔数正确但结构损坏（错误）。
"""

import io
from typing import List, Optional

from elftools.common.exceptions import ELFError
from elftools.elf.dynamic import DynamicSection
from elftools.elf.elffile import ELFFile

ELF_MAGIC = b"\x7fELF"

# 64 位 ELF 文件头的大小，更短的内容不可能是可加载的 ELF
MINIMAL_ELF_SIZE = 64


class ElfError(Exception):
    """ELF 相关错误基类"""
    pass


class NotABinaryError(ElfError):
    """内容开头不是 ELF 魔数"""
    pass


class MalformedBinaryError(ElfError):
    """ELF 魔数正确但结构无法解析"""
    pass


class DependencyExtractionError(ElfError):
    """无法读取依赖列表或所需的段"""
    pass


class ElfBinary:
    """已解析的 ELF 文件"""

    def __init__(self, elffile: ELFFile, name: Optional[str] = None):
        self._elf = elffile
        self.name = name or "<memory>"

    @property
    def elffile(self) -> ELFFile:
        return self._elf

    def _section_data(self, section) -> bytes:
        """读取段内容，内容超出文件末尾时报错"""
        data = section.data()
        # 压缩段的 data() 是解压后的内容，长度与 sh_size 无关
        if section['sh_type'] == 'SHT_NOBITS' or section.compressed:
            return data
        if len(data) != section['sh_size']:
            raise DependencyExtractionError(
                f"{self.name}: 段 {section.name} 不完整（应为 {section['sh_size']} 字节，"
                f"实际 {len(data)} 字节）"
            )
        return data

    def imported_libraries(self) -> List[str]:
        """按声明顺序返回 DT_NEEDED 库名

        Raises:
            DependencyExtractionError: 动态段或其字符串表无法完整读取
        """
        try:
            libraries = []
            for section in self._elf.iter_sections():
                if not isinstance(section, DynamicSection):
                    continue
                self._section_data(section)
                self._section_data(self._elf.get_section(section['sh_link']))
                for tag in section.iter_tags():
                    if tag.entry.d_tag != 'DT_NEEDED':
                        continue
                    if not tag.needed:
                        raise DependencyExtractionError(f"{self.name}: DT_NEEDED 库名为空")
                    libraries.append(tag.needed)
            return libraries
        except (ELFError, ValueError, AttributeError) as e:
            raise DependencyExtractionError(f"{self.name}: 无法读取依赖库列表: {e}") from e

    def section(self, name: str) -> Optional[bytes]:
        """读取指定段的原始内容，段不存在时返回 None

        Raises:
            DependencyExtractionError: 段存在但无法完整读取
        """
        try:
            section = self._elf.get_section_by_name(name)
            if section is None:
                return None
            return self._section_data(section)
        except (ELFError, ValueError) as e:
            raise DependencyExtractionError(f"{self.name}: 无法读取段 {name}: {e}") from e

    def interpreter(self) -> Optional[str]:
        """返回 .interp 段声明的动态链接器路径"""
        data = self.section('.interp')
        if data is None:
            return None
        interp = data.split(b"\0", 1)[0]
        if not interp:
            return None
        return interp.decode("utf-8", errors="surrogateescape")


def is_elf(content: bytes) -> bool:
    """内容是否以 ELF 魔数开头"""
    return content[:len(ELF_MAGIC)] == ELF_MAGIC


def parse_elf(content: bytes, name: Optional[str] = None) -> ElfBinary:
    """解析 ELF 内容

    Args:
        content: 文件内容
        name: 用于错误信息的文件名

    Returns:
        ElfBinary: 解析结果

    Raises:
        NotABinaryError: 不是 ELF 文件
        MalformedBinaryError: ELF 结构损坏
    """
    label = name or "<memory>"
    if not is_elf(content):
        raise NotABinaryError(f"{label}: 不是 ELF 文件")

    try:
        elffile = ELFFile(io.BytesIO(content))
    except (ELFError, ValueError) as e:
        raise MalformedBinaryError(f"{label}: ELF 文件损坏: {e}") from e

    return ElfBinary(elffile, name=label)
