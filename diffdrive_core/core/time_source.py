"""
单调时钟

核心中所有的估计/控制时间计算只使用单调时钟，不使用系统墙钟时间，
避免 NTP 校时或手动修改系统时间导致的时间跳变。
"""
import time

from .quantities import Seconds


def get_monotonic_time() -> float:
    """单调时钟读数 (秒)"""
    return time.monotonic()


def monotonic_now() -> Seconds:
    """单调时钟读数，作为 Seconds 时间戳"""
    return Seconds(time.monotonic())
