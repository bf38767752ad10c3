"""
日志系统 - 结构化日志配置

提供：
- 结构化 JSON 日志（生产环境）
- 彩色控制台日志（开发环境）
- 平台调用上下文（耗时、平台名称）
"""

import logging
import json
import sys
import time
from datetime import datetime, timezone
from typing import Optional


# 第三方库的日志过于详细
NOISY_LOGGERS = ("urllib3", "requests", "httpx")


class StructuredFormatter(logging.Formatter):
    """结构化 JSON 日志格式化器"""

    def format(self, record: logging.LogRecord) -> str:
        """格式化日志记录为 JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # 添加额外字段
        for attr in ("request_id", "provider", "duration_ms"):
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = value
        if getattr(record, "extra_data", None):
            log_data["data"] = record.extra_data

        # 异常信息
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class SimpleFormatter(logging.Formatter):
    """简单的彩色日志格式化器（开发环境）"""

    COLORS = {
        'DEBUG': '\033[36m',     # 青色
        'INFO': '\033[32m',      # 绿色
        'WARNING': '\033[33m',   # 黄色
        'ERROR': '\033[31m',     # 红色
        'CRITICAL': '\033[35m',  # 紫色
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')

        msg = f"{color}[{timestamp}] [{record.levelname}]{self.RESET} {record.name}: {record.getMessage()}"

        provider = getattr(record, 'provider', None)
        if provider:
            msg = f"{color}[{provider}]{self.RESET} {msg}"

        duration = getattr(record, 'duration_ms', None)
        if duration is not None:
            msg += f" ({duration:.2f}ms)"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    配置日志系统

    Args:
        level: 日志级别
        json_format: 是否使用 JSON 格式
        log_file: 日志文件路径（可选，始终为 JSON 格式）

    Returns:
        logging.Logger: 根日志记录器
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # 清除现有处理器
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(StructuredFormatter() if json_format else SimpleFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """获取命名日志记录器"""
    return logging.getLogger(name)


class LogContext:
    """
    平台调用日志上下文

    记录开始、完成或失败，并附带耗时。异常不会被吞掉。
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation: str,
        provider: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra
    ):
        self.logger = logger
        self.operation = operation
        self.provider = provider
        self.request_id = request_id
        self.extra = extra
        self.start_time = None
        self.duration_ms = 0.0

    def _fields(self, **more):
        return {
            'provider': self.provider,
            'request_id': self.request_id,
            'extra_data': self.extra,
            **more,
        }

    def __enter__(self):
        self.start_time = time.time()
        self.logger.debug(f"开始 {self.operation}", extra=self._fields())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.time() - self.start_time) * 1000
        if exc_type:
            self.logger.warning(
                f"失败 {self.operation}: {exc_val}",
                extra=self._fields(duration_ms=self.duration_ms),
            )
        else:
            self.logger.info(
                f"完成 {self.operation}",
                extra=self._fields(duration_ms=self.duration_ms),
            )
        return False
