"""
rampack CLI 主入口

提供命令行接口，支持 build/validate/inspect/info/example 等命令。
"""

import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..utils import configure_logging, OutputLevel
from .commands import build, validate, inspect


app = typer.Typer(
    name="rampack",
    help="rampack - 自包含 initramfs 镜像构建工具",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """显示版本信息"""
    if value:
        console.print(f"rampack v{__version__}")
        raise typer.Exit()


def verbose_callback(verbose: bool) -> None:
    """配置详细输出"""
    configure_logging(level=OutputLevel.DEBUG if verbose else OutputLevel.INFO)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="显示版本信息"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        callback=verbose_callback,
        help="启用详细输出"
    )
) -> None:
    """rampack - 自包含 initramfs 镜像构建工具

    使用 --help 查看可用命令的详细信息。
    """
    pass


# 注册子命令
app.command("build", help="构建 initramfs 镜像")(build.build_command)
app.command("validate", help="验证配置文件")(validate.validate_command)
app.command("inspect", help="列出镜像中的条目")(inspect.inspect_command)


@app.command("info")
def info_command() -> None:
    """显示系统信息"""
    import elftools
    import zstandard

    from ..build.compressor import CompressorFactory

    console.print("[bold]rampack 系统信息[/bold]")
    console.print()

    table = Table(title="版本信息")
    table.add_column("组件", style="cyan")
    table.add_column("版本", style="green")

    table.add_row("rampack", __version__)
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("zstandard", zstandard.__version__)
    table.add_row("pyelftools", elftools.__version__)

    console.print(table)
    console.print()

    algo_table = Table(title="支持的压缩算法")
    algo_table.add_column("算法", style="cyan")
    for algo in CompressorFactory.get_available_algorithms():
        algo_table.add_row(algo.value)

    console.print(algo_table)


@app.command("example")
def example_command(
    output: str = typer.Option(
        "rampack.yaml",
        "--output", "-o",
        help="输出配置文件路径"
    )
) -> None:
    """生成示例配置文件"""
    from ..config import save_config, ConfigError
    from ..config.schema import RampackConfig, ContentModel

    config = RampackConfig(
        files=["/usr/bin/busybox", "/usr/bin/bash"],
        directories=["/dev", "/proc", "/sys", "/run", "/tmp"],
        contents=[
            ContentModel(
                dest="/init",
                mode=0o755,
                text="#!/usr/bin/bash\nmount -t proc proc /proc\nexec /usr/bin/bash\n",
            ),
        ],
    )

    try:
        save_config(config, output)
    except ConfigError as e:
        console.print(f"[red]生成示例配置失败: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"✓ 示例配置文件已生成: [green]{output}[/green]")
    console.print("请根据需要修改配置文件，然后运行:")
    console.print(f"  [cyan]rampack build -c {output} -o initramfs.img[/cyan]")


if __name__ == "__main__":
    app()
