"""
日志模块

基于 loguru。命令输出走 stdout，日志默认写到 stderr，可选同时写入滚动日志文件。
"""

import os
import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"
FILE_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"


def resolve_level(level: Optional[str] = None) -> str:
    """显式级别优先，其次 MODRESOLVE_DEBUG / MODRESOLVE_LOG_LEVEL 环境变量"""
    if level:
        return level.upper()
    if os.environ.get("MODRESOLVE_DEBUG", "0") == "1":
        return "DEBUG"
    return os.environ.get("MODRESOLVE_LOG_LEVEL", "INFO").upper()


def setup_logger(
    level: Optional[str] = None,
    sink=sys.stderr,
    enqueue: bool = True,
    colorize: bool = True,
    log_file: Optional[str] = None,
) -> str:
    """
    设置日志记录器

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        sink: 控制台输出目标，默认 stderr，避免与命令输出混在一起
        enqueue: 是否启用队列（线程安全）
        colorize: 是否启用颜色
        log_file: 额外写入的日志文件，按 10 MB 滚动，保留 5 个

    Returns:
        实际使用的日志级别
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
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_LOG_FORMAT,
            level="DEBUG",
            enqueue=enqueue,
            encoding="utf-8",
            rotation="10 MB",
            retention=5,
        )

    if debug:
        logger.debug("DEBUG 模式已启用")
    return level


__all__ = ["logger", "setup_logger", "resolve_level"]
