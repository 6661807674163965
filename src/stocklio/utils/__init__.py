"""
工具模块
提供配置、日志等通用功能
"""

from .config import Config, load_config, get_config, set_config, reset_config
from .logger import setup_logger, setup_logger_from_config

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "set_config",
    "reset_config",
    "setup_logger",
    "setup_logger_from_config",
]
