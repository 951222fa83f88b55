"""
日志模块

使用 loguru 输出控制台日志，可选写入滚动日志文件。
"""

import os
import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"


def resolve_level(level: Optional[str] = None) -> str:
    """未显式指定时，根据 PACKWRIGHT_DEBUG 环境变量决定日志级别"""
    if level:
        return level.upper()
    return "DEBUG" if os.environ.get("PACKWRIGHT_DEBUG", "0") == "1" else "INFO"


def setup_logger(
    level: Optional[str] = None,
    sink=sys.stdout,
    log_file: Optional[str] = None,
    enqueue: bool = True,
    colorize: bool = True,
) -> str:
    """
    设置日志记录器

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        sink: 控制台输出目标
        log_file: 日志文件路径（按 10 MB 滚动，保留 5 份）
        enqueue: 是否启用队列（线程安全）
        colorize: 是否启用颜色

    Returns:
        最终生效的日志级别
    """
    level = resolve_level(level)
    debug = level == "DEBUG"

    logger.remove()
    logger.add(
        sink=sink,
        format=LOG_FORMAT,
        enqueue=enqueue,
        level=level,
        colorize=colorize,
        backtrace=debug,
        diagnose=debug,
    )

    if log_file:
        logger.add(
            log_file,
            format=LOG_FORMAT,
            enqueue=enqueue,
            level=level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )

    if debug:
        logger.debug("DEBUG 模式已启用")
    return level


__all__ = ["logger", "setup_logger", "resolve_level", "LOG_FORMAT"]
