"""
日志工具 - 统一输出门面

封装 Rich Console，为镜像构建提供带时间戳、带阶段标记的统一输出接口。
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.text import Text


class OutputLevel:
    """输出级别常量"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LogStage:
    """日志阶段标记"""
    INIT = "INIT"
    BUILD = "BUILD"
    DIR = "DIR"
    FILE = "FILE"
    LINK = "LINK"
    ELF = "ELF"
    DEPS = "DEPS"
    PUBLISH = "PUBLISH"
    DONE = "DONE"


_LEVEL_ORDER = {
    OutputLevel.DEBUG: 0,
    OutputLevel.INFO: 1,
    OutputLevel.SUCCESS: 1,
    OutputLevel.WARNING: 2,
    OutputLevel.ERROR: 3,
}

_LEVEL_STYLES = {
    OutputLevel.DEBUG: "dim",
    OutputLevel.INFO: "default",
    OutputLevel.SUCCESS: "green",
    OutputLevel.WARNING: "yellow",
    OutputLevel.ERROR: "red bold",
}


class OutputFacade:
    """输出门面

    所有输出都带时间戳；错误输出到 stderr，其余输出到 stdout。
    可选地把每条消息追加写入日志文件。
    """

    def __init__(self):
        self._lock = threading.RLock()
        # 不绑定具体文件，每次输出时取当前的 sys.stdout / sys.stderr
        self._console = Console(highlight=False, log_path=False)
        self._error_console = Console(stderr=True, highlight=False, log_path=False)
        self._file_handle = None
        self._log_level = OutputLevel.INFO
        self._date_format = "%Y-%m-%d %H:%M:%S"
        self._time_format = "%H:%M:%S"

    @property
    def level(self) -> str:
        return self._log_level

    def _get_timestamp(self, include_date: bool = False) -> str:
        now = datetime.now()
        return now.strftime(self._date_format if include_date else self._time_format)

    def _should_output(self, level: str) -> bool:
        current_level = _LEVEL_ORDER.get(self._log_level, 1)
        return _LEVEL_ORDER.get(level, 1) >= current_level

    def _format_message(self, message: str, level: str, stage: Optional[str] = None,
                        include_date: bool = False) -> str:
        timestamp = self._get_timestamp(include_date)
        if stage:
            return f"[{timestamp}] [{level}] [{stage}] {message}"
        return f"[{timestamp}] [{level}] {message}"

    def _write_to_file(self, message: str, level: str, stage: Optional[str] = None):
        if not self._file_handle:
            return
        self._file_handle.write(self._format_message(message, level, stage, include_date=True) + "\n")
        self._file_handle.flush()

    def emit(self, message: str, level: str = OutputLevel.INFO, stage: Optional[str] = None):
        """输出一条消息"""
        if not self._should_output(level):
            return

        with self._lock:
            console = self._error_console if level == OutputLevel.ERROR else self._console
            # 路径里可能出现 [ ]，消息本体以纯文本拼接，不按 markup 解析
            text = Text.assemble(
                (self._get_timestamp(), "dim"),
                " ",
                (level, "bold"),
                " ",
            )
            if stage:
                text.append(stage, style="cyan")
                text.append(" ")
            text.append(message, style=_LEVEL_STYLES.get(level, "default"))
            console.print(text, soft_wrap=True)
            self._write_to_file(message, level, stage)

    def set_level(self, level: str):
        """设置输出级别"""
        with self._lock:
            if level in _LEVEL_ORDER:
                self._log_level = level

    def set_log_file(self, file_path: Union[str, Path]):
        """设置日志文件（追加写入）"""
        with self._lock:
            self._close_file()
            log_path = Path(file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_path, "a", encoding="utf-8")

    def _close_file(self):
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def close(self):
        """关闭输出门面"""
        with self._lock:
            self._close_file()


# 全局输出门面实例
_output_facade: Optional[OutputFacade] = None


def get_output_facade() -> OutputFacade:
    """获取全局输出门面实例"""
    global _output_facade
    if _output_facade is None:
        _output_facade = OutputFacade()
    return _output_facade


def debug(message: str, stage: Optional[str] = None):
    """调试信息输出"""
    get_output_facade().emit(message, OutputLevel.DEBUG, stage)


def info(message: str, stage: Optional[str] = None):
    """普通信息输出"""
    get_output_facade().emit(message, OutputLevel.INFO, stage)


def success(message: str, stage: Optional[str] = None):
    """成功信息输出"""
    get_output_facade().emit(message, OutputLevel.SUCCESS, stage)


def warning(message: str, stage: Optional[str] = None):
    """警告信息输出"""
    get_output_facade().emit(message, OutputLevel.WARNING, stage)


def error(message: str, stage: Optional[str] = None):
    """错误信息输出"""
    get_output_facade().emit(message, OutputLevel.ERROR, stage)


def set_log_level(level: str):
    """设置全局日志级别"""
    get_output_facade().set_level(level)


def set_log_file(file_path: Union[str, Path]):
    """设置全局日志文件"""
    get_output_facade().set_log_file(file_path)


def configure_logging(level: str = OutputLevel.INFO, log_file: Optional[Union[str, Path]] = None):
    """配置日志系统"""
    set_log_level(level)
    if log_file:
        set_log_file(log_file)


def close_logger():
    """关闭日志系统"""
    global _output_facade
    if _output_facade:
        _output_facade.close()
        _output_facade = None


# 模块级别的清理
import atexit
atexit.register(close_logger)
