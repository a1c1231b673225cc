"""
Validate 命令实现

检查镜像配置；通过时给出配置摘要，失败时列出每个字段的错误。
"""

import json
from pathlib import Path
from typing import Any, Dict, List

import typer
from rich.console import Console
from rich.table import Table

from ...config import ConfigError, ConfigValidationError, load_config
from ...config.schema import RampackConfig


console = Console()

_MAX_INPUT_WIDTH = 48


def validate_command(
    config: str = typer.Option(..., "--config", "-c", help="配置文件路径"),
    json_output: bool = typer.Option(False, "--json", help="输出 JSON 格式的错误信息"),
) -> None:
    """验证配置文件

    示例:
        rampack validate -c rampack.yaml
        rampack validate -c rampack.yaml --json
    """
    config_path = Path(config)

    try:
        config_obj = load_config(config_path)
    except ConfigValidationError as e:
        _report_errors(config_path, e.errors, json_output)
        raise typer.Exit(1)
    except ConfigError as e:
        _report_errors(config_path, [{"loc": [], "msg": str(e), "type": "config_error"}], json_output)
        raise typer.Exit(1)

    if json_output:
        console.print(json.dumps({"file": str(config_path), "errors": [], "error_count": 0}), markup=False)
        return

    console.print(f"[green]✓ 配置文件验证通过[/green]: {config_path}")
    _print_summary(config_obj)


def _print_summary(config: RampackConfig) -> None:
    level = config.compression.effective_level()
    console.print(
        f"  压缩: [cyan]{config.compression.algo.value}[/cyan]"
        + (f" (级别 {level})" if level is not None else "")
    )
    console.print(f"  库目录: {config.image.library_dir}")
    console.print(
        f"  目录 {len(config.directories)} 个，内容条目 {len(config.contents)} 个，"
        f"主机文件 {len(config.files)} 个"
    )


def _report_errors(config_path: Path, errors: List[Dict[str, Any]], json_output: bool) -> None:
    if json_output:
        error_data = {
            "file": str(config_path),
            "errors": errors,
            "error_count": len(errors),
        }
        console.print(json.dumps(error_data, ensure_ascii=False, indent=2, default=str), markup=False)
        return

    console.print(f"[red]配置文件验证失败[/red]: {config_path}")

    table = Table(title=f"{len(errors)} 个错误")
    table.add_column("字段", style="cyan", no_wrap=True)
    table.add_column("错误信息", style="red")
    table.add_column("输入值", style="yellow")

    for item in errors:
        field = ".".join(str(part) for part in item.get("loc", ()))
        value = str(item.get("input", "")) if "input" in item else "-"
        if len(value) > _MAX_INPUT_WIDTH:
            value = value[:_MAX_INPUT_WIDTH - 3] + "..."
        table.add_row(field or "-", item.get("msg", "未知错误"), value)

    console.print(table)
