"""
构建器主类

按配置创建镜像、依次加入目录/内容/文件，成功则发布，失败则丢弃。
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..config.schema import RampackConfig
from ..utils.logging import info, success, error, debug, LogStage
from ..utils.paths import ensure_directory, format_size
from .image import Image, ImageStats

# 进度回调类型: (阶段, 当前, 总数, 消息)
ProgressCallback = Callable[[str, int, int, str], None]


class BuildError(Exception):
    """构建错误"""
    pass


@dataclass
class BuildResult:
    """构建结果"""
    success: bool
    output_path: Optional[Path] = None
    output_size: Optional[int] = None
    build_time: Optional[float] = None
    stats: Optional[ImageStats] = None
    error: Optional[str] = None


class Builder:
    """initramfs 镜像构建器"""

    def build(
        self,
        config: RampackConfig,
        output_path: Path,
        extra_files: Optional[Iterable[str]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BuildResult:
        """构建镜像

        Args:
            config: 配置对象
            output_path: 输出镜像路径
            extra_files: 配置之外额外加入的主机文件
            progress_callback: 进度回调函数

        Returns:
            BuildResult: 构建结果；失败时目标路径保持原样
        """
        start_time = time.time()
        output_path = Path(output_path)

        try:
            image = self._assemble(config, output_path, list(extra_files or []), progress_callback)
        except BuildError as e:
            return BuildResult(
                success=False,
                build_time=time.time() - start_time,
                error=str(e),
            )

        build_time = time.time() - start_time
        output_size = output_path.stat().st_size
        success(f"镜像构建成功: {output_path}", stage=LogStage.DONE)
        info(f"  条目数量: {image.stats.entries} (目录 {image.stats.directories}, "
             f"文件 {image.stats.files}, 符号链接 {image.stats.symlinks})")
        info(f"  ELF 文件: {image.stats.binaries}")
        info(f"  内容大小: {format_size(image.stats.content_bytes)}")
        info(f"  镜像大小: {format_size(output_size)}")
        info(f"  构建时间: {build_time:.1f}秒")

        return BuildResult(
            success=True,
            output_path=output_path,
            output_size=output_size,
            build_time=build_time,
            stats=image.stats,
        )

    def _assemble(
        self,
        config: RampackConfig,
        output_path: Path,
        extra_files: List[str],
        progress_callback: Optional[ProgressCallback],
    ) -> Image:
        info(f"开始构建镜像: {output_path}", stage=LogStage.BUILD)
        debug(f"构建配置: algorithm={config.compression.algo.value} "
              f"level={config.compression.effective_level()} "
              f"library_dir={config.image.library_dir} files={len(config.files) + len(extra_files)}",
              stage=LogStage.BUILD)

        try:
            ensure_directory(output_path.parent)
            image = Image.from_config(output_path, config)
        except Exception as e:
            error(f"无法创建镜像: {e}", stage=LogStage.INIT)
            raise BuildError(f"无法创建镜像: {e}") from e

        files = list(config.files) + extra_files
        total = len(config.directories) + len(config.contents) + len(files)
        current = 0

        def report(message: str) -> None:
            if progress_callback:
                progress_callback("构建镜像", current, total, message)

        try:
            for directory in config.directories:
                report(f"目录: {directory}")
                image.append_directory(directory)
                current += 1

            for item in config.contents:
                report(f"内容: {item.dest}")
                image.append_content(item.read_content(), item.mode, item.dest)
                current += 1

            for path in files:
                report(f"文件: {path}")
                image.append_file(path)
                current += 1

            report("发布镜像")
            image.finalize()
        except Exception as e:
            image.discard()
            error(f"构建失败: {e}", stage=LogStage.BUILD)
            raise BuildError(f"构建失败: {e}") from e

        return image
