"""
配置管理模块
统一管理行情数据层配置
"""

import os
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
import yaml
from dotenv import load_dotenv

from ..data.currency import Currency


@dataclass
class ProviderConfig:
    """行情数据源配置"""
    base_url: str = "https://query1.finance.yahoo.com"
    quote_timeout: float = 10.0
    history_timeout: float = 15.0
    user_agent: str = "Mozilla/5.0 (compatible; stocklio/0.1)"


@dataclass
class CacheConfig:
    """
    缓存配置

    TTL 单位为秒，None 或 0 表示永不过期（进程生命周期内有效）。
    """
    price_ttl: Optional[float] = None
    rate_ttl: Optional[float] = None
    coalesce_requests: bool = True


@dataclass
class ChartConfig:
    """K线图配置"""
    default_range: str = "1y"
    default_interval: str = "1d"


@dataclass
class LoggingConfig:
    """日志配置"""
    level: str = "INFO"
    file: str = ""
    rotation: str = "10 MB"
    retention: str = "1 week"


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass
class Config:
    """
    系统配置

    统一管理所有配置项。
    """
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    chart: ChartConfig = field(default_factory=ChartConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # 基础配置
    display_currency: str = Currency.TWD.value
    debug: bool = False

    def __post_init__(self):
        """从环境变量加载配置"""
        self.apply_env()
        self.validate()

    def apply_env(self) -> None:
        """环境变量覆盖（优先级最高）"""
        # 数据源
        self.provider.base_url = os.getenv("STOCKLIO_BASE_URL", self.provider.base_url)

        # 缓存
        price_ttl = os.getenv("STOCKLIO_PRICE_TTL")
        if price_ttl is not None:
            self.cache.price_ttl = _optional_float(price_ttl)
        rate_ttl = os.getenv("STOCKLIO_RATE_TTL")
        if rate_ttl is not None:
            self.cache.rate_ttl = _optional_float(rate_ttl)

        self.display_currency = os.getenv("STOCKLIO_DISPLAY_CURRENCY", self.display_currency)

        # 日志
        self.logging.level = os.getenv("LOG_LEVEL", self.logging.level)
        self.logging.file = os.getenv("LOG_FILE", self.logging.file)

        # 调试模式
        debug = os.getenv("DEBUG")
        if debug is not None:
            self.debug = debug.lower() == "true"

    def validate(self) -> None:
        """
        校验配置值

        Raises:
            ValueError: 配置值非法
        """
        self.display_currency = self.display_currency.strip().upper()
        if self.display_currency not in Currency.codes():
            raise ValueError(
                f"未知的显示币种: '{self.display_currency}'，"
                f"可选值: {', '.join(Currency.codes())}"
            )

        if self.provider.quote_timeout <= 0 or self.provider.history_timeout <= 0:
            raise ValueError("请求超时必须为正数")

        for name in ("price_ttl", "rate_ttl"):
            ttl = getattr(self.cache, name)
            if ttl is not None and ttl < 0:
                raise ValueError(f"缓存 {name} 不能为负数: {ttl}")

    @property
    def currency(self) -> Currency:
        """显示币种"""
        return Currency(self.display_currency)

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        """
        从 YAML 文件加载配置

        Args:
            path: 配置文件路径

        Returns:
            Config 对象
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """
        从字典加载配置

        Args:
            data: 配置字典

        Returns:
            Config 对象
        """
        config = cls()

        sections = {
            "provider": config.provider,
            "cache": config.cache,
            "chart": config.chart,
            "logging": config.logging,
        }
        for section_name, section in sections.items():
            for key, value in (data.get(section_name) or {}).items():
                if not hasattr(section, key):
                    raise ValueError(f"未知配置项: {section_name}.{key}")
                setattr(section, key, value)

        if "display_currency" in data:
            config.display_currency = data["display_currency"]

        if "debug" in data:
            config.debug = data["debug"]

        # 环境变量优先于配置文件
        config.apply_env()
        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "provider": {
                "base_url": self.provider.base_url,
                "quote_timeout": self.provider.quote_timeout,
                "history_timeout": self.provider.history_timeout,
                "user_agent": self.provider.user_agent,
            },
            "cache": {
                "price_ttl": self.cache.price_ttl,
                "rate_ttl": self.cache.rate_ttl,
                "coalesce_requests": self.cache.coalesce_requests,
            },
            "chart": {
                "default_range": self.chart.default_range,
                "default_interval": self.chart.default_interval,
            },
            "logging": {
                "level": self.logging.level,
                "file": self.logging.file,
                "rotation": self.logging.rotation,
                "retention": self.logging.retention,
            },
            "display_currency": self.display_currency,
            "debug": self.debug,
        }

    def save_yaml(self, path: str) -> None:
        """保存配置到 YAML 文件"""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)


def load_config(
    config_path: Optional[str] = None,
    env_file: Optional[str] = None,
) -> Config:
    """
    加载配置

    优先级：环境变量 > 配置文件 > 默认值

    Args:
        config_path: YAML 配置文件路径
        env_file: .env 文件路径

    Returns:
        Config 对象
    """
    # 加载 .env 文件
    if env_file:
        load_dotenv(env_file)
    else:
        default_env = Path(".env")
        if default_env.exists():
            load_dotenv(default_env)

    if config_path and Path(config_path).exists():
        config = Config.from_yaml(config_path)
    else:
        config = Config()

    return config


# 全局配置实例
_global_config: Optional[Config] = None


def get_config() -> Config:
    """获取全局配置"""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: Config) -> None:
    """设置全局配置"""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """重置全局配置（测试用）"""
    global _global_config
    _global_config = None
