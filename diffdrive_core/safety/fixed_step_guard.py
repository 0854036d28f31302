"""
固定步长时间保护

判断一个时间间隔是否可接受: |dt - expected| <= tolerance。
估计器和控制器调用处据此在 "正常执行" 与 "执行降级策略" 之间选择，
降级策略 (hold / zero / skip / fault) 由调用者配置，本模块只做分类。
"""
from dataclasses import dataclass
from typing import Any, Dict

from ..config.validation import get_config_value
from ..core.enums import TimingVerdict
from ..core.exceptions import QuantityError
from ..core.quantities import Seconds, require_unit


def acceptable(dt: Seconds, expected: Seconds, tolerance: Seconds) -> bool:
    """
    |dt - expected| <= tolerance

    纯函数，无状态，确定性。
    """
    require_unit(dt, Seconds, 'dt')
    require_unit(expected, Seconds, 'expected')
    require_unit(tolerance, Seconds, 'tolerance')
    return abs(dt - expected) <= tolerance


@dataclass(frozen=True)
class FixedStepGuard:
    """
    固定步长保护策略对象

    Attributes:
        expected: 期望间隔
        tolerance: 允许偏差 (非负)
    """
    expected: Seconds
    tolerance: Seconds

    def __post_init__(self):
        require_unit(self.expected, Seconds, 'expected')
        require_unit(self.tolerance, Seconds, 'tolerance')
        if self.expected.value <= 0:
            raise QuantityError(f"expected interval must be positive, got {self.expected}")
        if self.tolerance.value < 0:
            raise QuantityError(f"tolerance must be non-negative, got {self.tolerance}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'FixedStepGuard':
        """
        从配置创建

        timing.expected_dt 未配置时继承 1 / system.ctrl_freq。
        """
        expected = get_config_value(config, 'timing.expected_dt')
        if expected is None:
            expected = 1.0 / get_config_value(config, 'system.ctrl_freq', 50)
        tolerance = get_config_value(config, 'timing.tolerance', 0.005)
        return cls(Seconds(expected), Seconds(tolerance))

    def acceptable(self, dt: Seconds) -> bool:
        return acceptable(dt, self.expected, self.tolerance)

    def classify(self, dt: Seconds) -> TimingVerdict:
        if self.acceptable(dt):
            return TimingVerdict.NOMINAL
        return TimingVerdict.TOO_SHORT if dt < self.expected else TimingVerdict.TOO_LONG
