"""
Build 命令实现

从配置文件构建 initramfs 镜像。
"""

import traceback
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from ...config import load_config, ConfigError, ConfigValidationError
from ...utils.logging import set_log_level, set_log_file, OutputLevel
from ...utils.paths import format_size


console = Console()


def build_command(
    config: str = typer.Option(..., "--config", "-c", help="配置文件路径"),
    output: str = typer.Option(..., "--output", "-o", help="输出镜像路径"),
    add: Optional[List[str]] = typer.Option(None, "--add", "-a", help="额外加入的主机文件（可重复）"),
    force: bool = typer.Option(False, "--force", "-f", help="覆盖已存在的输出文件"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="日志输出文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细调试日志 (DEBUG 级别)"),
) -> None:
    """构建镜像

    把配置中的文件连同它们的符号链接目标和 ELF 运行时依赖打包为压缩的 cpio 镜像。

    示例:
        rampack build -c rampack.yaml -o initramfs.img
        rampack build -c rampack.yaml -o initramfs.img --add /usr/bin/strace
    """
    from ...build.builder import Builder

    config_path = Path(config)
    output_path = Path(output)

    if verbose:
        set_log_level(OutputLevel.DEBUG)

    if log_file:
        try:
            set_log_file(log_file)
        except OSError:
            console.print(f"[yellow]无法写入日志文件: {log_file}[/yellow]")

    if output_path.exists() and not force:
        console.print(f"[red]输出文件已存在: {output_path}[/red]")
        console.print("使用 --force 参数覆盖")
        raise typer.Exit(1)

    try:
        console.print(f"[cyan]正在加载配置文件[/cyan]: {config_path}")
        config_obj = load_config(config_path)
    except ConfigValidationError as e:
        console.print("[red]配置验证失败:[/red]")
        console.print(e.format_errors(), markup=False)
        raise typer.Exit(1)
    except ConfigError as e:
        console.print(f"[red]配置错误[/red]: {e}", markup=False)
        raise typer.Exit(1)

    def progress_callback(stage: str, current: int, total: int, message: str = "") -> None:
        if verbose and total > 0:
            console.print(f"[blue]{stage}[/blue] ({current}/{total}): {message}", highlight=False)

    builder = Builder()
    try:
        result = builder.build(
            config_obj,
            output_path,
            extra_files=add or [],
            progress_callback=progress_callback,
        )
    except Exception as e:
        console.print(f"[red]✗ 构建过程中发生意外错误[/red]: {e}")
        if log_file:
            console.print(f"[yellow]详细错误信息:[/yellow]\n{traceback.format_exc()}")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"[red]✗ 构建失败[/red]: {result.error}")
        if log_file:
            console.print(f"[yellow]请检查日志文件 {log_file} 获取详细信息。[/yellow]")
        raise typer.Exit(1)

    console.print(f"[green]✓ 镜像构建完成[/green]: {output_path}")
    console.print(f"[blue]条目数量[/blue]: {result.stats.entries}")
    console.print(f"[blue]文件大小[/blue]: {format_size(result.output_size)}")
