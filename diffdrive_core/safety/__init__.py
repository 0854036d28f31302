"""时间保护与命令看门狗"""
from .fixed_step_guard import FixedStepGuard, acceptable
from .command_watchdog import CommandWatchdog
