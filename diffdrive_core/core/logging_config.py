"""
统一日志配置模块

使用方式:
=========

方式 1: 标准 Python 日志
    import logging
    logger = logging.getLogger(__name__)

    # 日志配置由应用层统一设置

方式 2: 使用 get_logger()
    from diffdrive_core.core.logging_config import get_logger
    logger = get_logger(__name__)

方式 3: 使用 ThrottledLogger (高频日志场景)
    from diffdrive_core.core.logging_config import ThrottledLogger
    throttled = ThrottledLogger(logger, min_interval=5.0)

    # 例如：过期测量、时间间隔异常等每个控制周期都可能触发的警告

日志级别规范:
=============

DEBUG:   每周期细节，例如 predict/correct 的 dt、创新量
INFO:    状态转换，例如到达目标、估计器重置
WARNING: 拒绝与异常，例如乱序样本、时间间隔异常、离群测量
ERROR:   信念发散
"""
import logging
import sys
import time
from typing import Dict, Optional

DEFAULT_FORMAT = '[%(name)s] %(levelname)s: %(message)s'
DEFAULT_LEVEL = logging.INFO


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    获取模块日志器

    Args:
        name: 日志器名称，通常使用 __name__
        level: 日志级别，默认为 INFO

    Returns:
        配置好的 Logger 实例
    """
    logger = logging.getLogger(name)

    # 只在根日志器未配置时进行配置
    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(handler)

    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(DEFAULT_LEVEL)

    return logger


def configure_logging(level: int = logging.INFO,
                      format_str: str = DEFAULT_FORMAT) -> None:
    """配置全局日志设置"""
    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class ThrottledLogger:
    """
    节流日志器

    同一 key 的消息在 min_interval 秒内最多记录一次；key 为 None 时不节流。

    使用示例:
        throttled = ThrottledLogger(logger, min_interval=5.0)
        throttled.warning("stale measurement rejected", key="stale")
    """

    def __init__(self, logger: logging.Logger, min_interval: float = 1.0):
        self._logger = logger
        self._min_interval = min_interval
        self._last_log_times: Dict[str, float] = {}
        self._suppressed: Dict[str, int] = {}

    def _should_log(self, key: str) -> bool:
        current_time = time.monotonic()
        last_time = self._last_log_times.get(key)

        if last_time is None or current_time - last_time >= self._min_interval:
            self._last_log_times[key] = current_time
            return True
        self._suppressed[key] = self._suppressed.get(key, 0) + 1
        return False

    def suppressed_count(self, key: str) -> int:
        """key 被节流丢弃的消息数"""
        return self._suppressed.get(key, 0)

    def debug(self, msg: str, key: str = None, *args, **kwargs):
        if key is None or self._should_log(key):
            self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, key: str = None, *args, **kwargs):
        if key is None or self._should_log(key):
            self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, key: str = None, *args, **kwargs):
        if key is None or self._should_log(key):
            self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, key: str = None, *args, **kwargs):
        if key is None or self._should_log(key):
            self._logger.error(msg, *args, **kwargs)
