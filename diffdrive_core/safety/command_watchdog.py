"""命令看门狗"""
from typing import Any, Dict, Optional

from ..core.constants import NEVER_RECEIVED_TIME_MS
from ..core.data_types import WatchdogStatus
from ..core.interfaces import ILifecycleComponent
from ..core.quantities import Seconds, require_unit
from ..core.time_source import monotonic_now


class CommandWatchdog(ILifecycleComponent):
    """命令看门狗

    记录每次输出有界命令的时间，供集成层判断命令是否中断。
    命令中断时执行器应独立衰减到零速，本类只报告 "上一次命令的年龄"。

    注意：所有时间使用单调时钟。now 参数省略时读取 time.monotonic()；
    控制循环传入自己的 tick 时间，保证与信念时间同一时间域。

    超时配置说明:
    - command_timeout_ms > 0: 超过此时间未输出命令则报告超时
    - command_timeout_ms <= 0: 禁用超时检测
    - startup_grace_ms: 从创建 (或 reset) 开始的宽限期，期间尚未输出命令不算超时
    """

    def __init__(self, config: Dict[str, Any], now: Optional[Seconds] = None):
        watchdog_config = config.get('watchdog', {})
        self.command_timeout_ms = watchdog_config.get('command_timeout_ms', 200)
        self.startup_grace_ms = watchdog_config.get('startup_grace_ms', 1000)

        self._creation_time: Seconds = self._now(now)
        self._last_command_time: Optional[Seconds] = None
        self._command_count = 0

    @staticmethod
    def _now(now: Optional[Seconds]) -> Seconds:
        if now is None:
            return monotonic_now()
        return require_unit(now, Seconds, 'now')

    @property
    def timeout_enabled(self) -> bool:
        return self.command_timeout_ms > 0

    def notify_command(self, now: Optional[Seconds] = None) -> None:
        """记录一次命令输出"""
        self._last_command_time = self._now(now)
        self._command_count += 1

    def last_command_age(self, now: Optional[Seconds] = None) -> Optional[Seconds]:
        """距上一次命令的时间，从未输出命令时返回 None"""
        if self._last_command_time is None:
            return None
        return self._now(now) - self._last_command_time

    def check(self, now: Optional[Seconds] = None) -> WatchdogStatus:
        """检查命令超时状态"""
        current = self._now(now)

        if self._last_command_time is None:
            # 从未输出命令
            elapsed_ms = (current - self._creation_time).to_milliseconds()
            if elapsed_ms < self.startup_grace_ms:
                return WatchdogStatus(timed_out=False, last_command_age_ms=0.0,
                                      in_startup_grace=True)
            return WatchdogStatus(timed_out=self.timeout_enabled,
                                  last_command_age_ms=NEVER_RECEIVED_TIME_MS)

        age_ms = (current - self._last_command_time).to_milliseconds()
        timed_out = self.timeout_enabled and age_ms > self.command_timeout_ms
        return WatchdogStatus(timed_out=timed_out, last_command_age_ms=age_ms)

    @property
    def command_count(self) -> int:
        return self._command_count

    def reset(self, now: Optional[Seconds] = None) -> None:
        self._last_command_time = None
        self._command_count = 0
        # 重新开始启动宽限期
        self._creation_time = self._now(now)
