"""
日志模块

库内各模块直接使用 loguru 的 logger；导入时不做任何配置，
由应用（或 MarketDataService.from_config(configure_logging=True)）调用 setup_logger。
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def setup_logger(
    level: str = "INFO",
    log_file: Optional[str] = None,
    rotation: str = "10 MB",
    retention: str = "1 week",
    format_string: Optional[str] = None,
) -> None:
    """
    重新配置日志输出

    移除已有的处理器，输出到 stderr，可选再写入按大小轮转的日志文件。

    Args:
        level: 日志级别
        log_file: 日志文件路径（为空只输出到控制台）
        rotation: 单个文件轮转大小
        retention: 旧文件保留时间
        format_string: 自定义格式（默认 DEFAULT_FORMAT）
    """
    fmt = format_string or DEFAULT_FORMAT

    logger.remove()
    logger.add(sys.stderr, level=level, format=fmt, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=fmt,
            rotation=rotation,
            retention=retention,
            compression="zip",
            encoding="utf-8",
        )

    logger.info(f"日志系统初始化完成，级别: {level}" + (f"，文件: {log_file}" if log_file else ""))


def setup_logger_from_config(logging_config, debug: bool = False) -> None:
    """
    按 utils.config.LoggingConfig 配置日志，file 为空时只输出到控制台

    Args:
        logging_config: 日志配置
        debug: 调试模式，强制使用 DEBUG 级别
    """
    setup_logger(
        level="DEBUG" if debug else logging_config.level,
        log_file=logging_config.file or None,
        rotation=logging_config.rotation,
        retention=logging_config.retention,
    )
