"""
Inspect 命令实现

解压镜像并按归档顺序列出其中的条目。
"""

import json
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from ...build.compressor import DecompressionError, decompress_image, detect_algorithm
from ...build.cpio import CpioEntry, CpioError, iter_entries
from ...utils.paths import format_size


console = Console()


def inspect_command(
    image: str = typer.Argument(..., help="镜像文件路径"),
    json_output: bool = typer.Option(False, "--json", help="输出 JSON 格式"),
) -> None:
    """列出镜像中的条目

    示例:
        rampack inspect initramfs.img
        rampack inspect initramfs.img --json
    """
    image_path = Path(image)

    if not image_path.is_file():
        console.print(f"[red]镜像文件不存在: {escape(str(image_path))}[/red]")
        raise typer.Exit(1)

    try:
        raw = image_path.read_bytes()
        algorithm = detect_algorithm(raw)
        entries = read_image_entries(raw)
    except (OSError, DecompressionError, CpioError) as e:
        console.print(f"[red]读取镜像失败: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if json_output:
        data = {
            "file": str(image_path),
            "compression": algorithm.value,
            "entries": [
                {
                    "name": entry.name,
                    "type": entry.kind,
                    "mode": f"0{entry.permissions:o}",
                    "size": len(entry.data),
                    **({"target": entry.data.decode("utf-8", errors="replace")} if entry.is_symlink else {}),
                }
                for entry in entries
            ],
        }
        console.print_json(json.dumps(data, ensure_ascii=False))
        return

    table = Table(title=f"{escape(image_path.name)} ({algorithm.value})")
    table.add_column("类型", style="cyan", no_wrap=True)
    table.add_column("权限", style="magenta", no_wrap=True)
    table.add_column("大小", style="green", justify="right")
    table.add_column("路径")

    for entry in entries:
        name = entry.name
        if entry.is_symlink:
            name = f"{name} -> {entry.data.decode('utf-8', errors='replace')}"
        # 路径按纯文本显示，不解析 [ ] 标记
        table.add_row(entry.kind, f"0{entry.permissions:o}", format_size(len(entry.data)), Text(name))

    console.print(table)
    console.print(f"共 {len(entries)} 个条目，镜像大小 {format_size(len(raw))}")


def read_image_entries(raw: bytes) -> List[CpioEntry]:
    """解压镜像并读出全部条目"""
    return list(iter_entries(decompress_image(raw)))
