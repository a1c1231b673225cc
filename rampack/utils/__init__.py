"""通用工具模块"""

from .logging import (
    configure_logging,
    set_log_level,
    set_log_file,
    close_logger,
    OutputLevel,
    LogStage,
    debug,
    info,
    success,
    warning,
    error,
)

from .paths import (
    ensure_directory,
    normalize_image_path,
    archive_name,
    format_size,
)

__all__ = [
    # 日志相关
    "configure_logging",
    "set_log_level",
    "set_log_file",
    "close_logger",
    "OutputLevel",
    "LogStage",
    "debug",
    "info",
    "success",
    "warning",
    "error",

    # 路径相关
    "ensure_directory",
    "normalize_image_path",
    "archive_name",
    "format_size",
]
