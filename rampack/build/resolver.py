"""
ELF 运行时依赖解析

把 ELF 文件声明的共享库和动态链接器解析为主机路径，并逐个加回镜像。
加回镜像时会再次经过 ELF 检查，从而得到依赖的传递闭包。
"""

import posixpath
from typing import TYPE_CHECKING, List

from ..utils.logging import debug, LogStage
from .elf import ElfBinary

if TYPE_CHECKING:
    from .image import Image

# 相对库名的默认搜索目录
DEFAULT_LIBRARY_DIR = "/usr/lib"


class DependencyResolver:
    """依赖解析器，绑定到一个镜像"""

    def __init__(self, image: "Image", library_dir: str = DEFAULT_LIBRARY_DIR):
        self.image = image
        self.library_dir = library_dir

    def resolve_path(self, name: str) -> str:
        """库名不是绝对路径时，拼接到默认库目录下"""
        if posixpath.isabs(name):
            return name
        return posixpath.join(self.library_dir, name)

    def dependencies(self, binary: ElfBinary) -> List[str]:
        """按顺序列出依赖的主机路径：先是 DT_NEEDED 库，最后是动态链接器

        Raises:
            DependencyExtractionError: 依赖信息无法读取
        """
        names = list(binary.imported_libraries())

        interp = binary.interpreter()
        if interp:
            names.append(interp)

        return [self.resolve_path(name) for name in names]

    def resolve_and_append(self, binary: ElfBinary) -> None:
        """把 binary 的全部依赖加入镜像"""
        deps = self.dependencies(binary)
        debug(f"{binary.name} 依赖 {len(deps)} 项: {', '.join(deps) or '-'}", stage=LogStage.DEPS)

        for dep in deps:
            self.image.append_file(dep)
