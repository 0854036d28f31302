"""
时间缓冲区

按时间戳升序保存最近的样本，回答 "t 时刻的值是多少"，
t 落在两个样本之间时做线性插值。

规则:
=====

1. 只插值，不外推: 样本少于两个或 t 不在 [earliest, latest] 内时返回 None
2. 乱序样本:
   - 早于最新样本但在容差内: 插入到正确位置 (REORDERED)
   - 早于最新样本超过容差: 拒绝 (REJECTED_OUT_OF_ORDER)，不静默丢弃
3. 时间戳完全相同的样本: 拒绝 (REJECTED_DUPLICATE)
4. 超过容量时淘汰最旧样本
5. 角度值插值走最短路径，避免 ±π 处的跳变

使用示例:
    buffer = TimeBuffer(capacity=200, out_of_order_tolerance=Seconds(0.05))
    buffer.push(TimestampedSample(10.0, Seconds(1.0)))
    buffer.push(TimestampedSample(20.0, Seconds(2.0)))
    buffer.interpolate(Seconds(1.5))   # 15.0
"""
import logging
from bisect import bisect_left, bisect_right
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from ..core.constants import normalize_angle
from ..core.data_types import ControlInput, Pose2, TimestampedSample
from ..core.enums import PushResult
from ..core.exceptions import InvalidStateError, QuantityError
from ..core.logging_config import ThrottledLogger
from ..core.quantities import Meters, Radians, Seconds, require_unit

logger = logging.getLogger(__name__)

T = TypeVar('T')

Lerp = Callable[[Any, Any, float], Any]


# =============================================================================
# 插值函数 lerp(a, b, ratio)，ratio ∈ [0, 1]
# =============================================================================

def linear_lerp(a, b, ratio: float):
    """线性插值，适用于 float 和同类 Quantity"""
    return a + (b - a) * ratio


def angle_lerp(a, b, ratio: float):
    """角度最短路径插值，结果规范化到 (-π, π]"""
    if isinstance(a, Radians):
        return (a + a.shortest_to(b) * ratio).wrap()
    return normalize_angle(a + normalize_angle(b - a) * ratio)


def control_input_lerp(a: ControlInput, b: ControlInput, ratio: float) -> ControlInput:
    """控制输入逐分量线性插值"""
    return ControlInput(
        linear_lerp(a.linear, b.linear, ratio),
        linear_lerp(a.angular, b.angular, ratio),
    )


def pose_lerp(a: Pose2, b: Pose2, ratio: float) -> Pose2:
    """位姿插值: x/y 线性，yaw 最短路径"""
    return Pose2(
        linear_lerp(a.x, b.x, ratio),
        linear_lerp(a.y, b.y, ratio),
        angle_lerp(a.yaw, b.yaw, ratio),
    )


class TimeBuffer(Generic[T]):
    """
    有界时间有序缓冲区

    时间戳保存在与样本平行的 float 列表中，查找使用二分 (O(log n))。
    插入/淘汰需要移动列表元素 (O(n))，容量较小 (≤ 数百) 时可以接受。

    lerp=None 时缓冲区只作为有序队列使用，interpolate() 不可用。
    """

    def __init__(self, capacity: int, out_of_order_tolerance: Seconds,
                 lerp: Optional[Lerp] = linear_lerp, name: str = 'buffer'):
        """
        Args:
            capacity: 最大样本数 (>= 2)
            out_of_order_tolerance: 乱序容差
            lerp: 插值函数，None 表示不支持插值
            name: 名称，用于日志
        """
        self._validate_params(capacity, out_of_order_tolerance)
        self._capacity = int(capacity)
        self._tolerance = out_of_order_tolerance
        self._lerp = lerp
        self._name = name

        self._stamps: List[float] = []
        self._samples: List[TimestampedSample] = []

        self._appended = 0
        self._reordered = 0
        self._rejected_out_of_order = 0
        self._rejected_duplicate = 0
        self._evicted = 0

        self._throttled = ThrottledLogger(logger, min_interval=5.0)

    @staticmethod
    def _validate_params(capacity: int, tolerance: Seconds) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 2:
            raise QuantityError(f"buffer capacity must be an integer >= 2, got {capacity!r}")
        require_unit(tolerance, Seconds, 'out_of_order_tolerance')
        if tolerance.value < 0:
            raise QuantityError(f"out_of_order_tolerance must be non-negative, got {tolerance}")

    # ------------------------------------------------------------------
    # 写入
    # ------------------------------------------------------------------

    def push(self, sample: TimestampedSample) -> PushResult:
        """
        插入样本

        Returns:
            PushResult，被拒绝的样本不会进入缓冲区
        """
        if not isinstance(sample, TimestampedSample):
            raise TypeError(f"push expects a TimestampedSample, got {type(sample).__name__}")

        stamp = sample.timestamp.value

        if self._stamps and stamp > self._stamps[-1]:
            self._stamps.append(stamp)
            self._samples.append(sample)
            self._appended += 1
            result = PushResult.APPENDED
        elif not self._stamps:
            self._stamps.append(stamp)
            self._samples.append(sample)
            self._appended += 1
            result = PushResult.APPENDED
        else:
            # 完全相同的时间戳优先判为重复，与距离最新样本多远无关
            index = bisect_left(self._stamps, stamp)
            if index < len(self._stamps) and self._stamps[index] == stamp:
                self._rejected_duplicate += 1
                logger.debug(f"[{self._name}] duplicate timestamp rejected: t={stamp:.6f}s")
                return PushResult.REJECTED_DUPLICATE

            latest = self._stamps[-1]
            if latest - stamp > self._tolerance.value:
                self._rejected_out_of_order += 1
                self._throttled.warning(
                    f"[{self._name}] out-of-order sample rejected: t={stamp:.6f}s is "
                    f"{latest - stamp:.6f}s older than latest (tolerance "
                    f"{self._tolerance.value:.6f}s)",
                    key='out_of_order')
                return PushResult.REJECTED_OUT_OF_ORDER

            self._stamps.insert(index, stamp)
            self._samples.insert(index, sample)
            self._reordered += 1
            logger.debug(f"[{self._name}] reordered sample inserted at index {index}")
            result = PushResult.REORDERED

        if len(self._samples) > self._capacity:
            del self._stamps[0]
            del self._samples[0]
            self._evicted += 1

        return result

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def interpolate(self, t: Seconds) -> Optional[T]:
        """
        返回 t 时刻的插值

        t 恰好等于某个样本时间戳时原样返回该样本的值。

        Returns:
            插值结果；样本不足或 t 不在覆盖区间内时返回 None

        Raises:
            InvalidStateError: 缓冲区构造时未提供插值函数
        """
        require_unit(t, Seconds, 't')
        if self._lerp is None:
            raise InvalidStateError(f"[{self._name}] buffer was created without an interpolator")
        if len(self._stamps) < 2:
            return None

        stamp = t.value
        if stamp < self._stamps[0] or stamp > self._stamps[-1]:
            return None

        index = bisect_left(self._stamps, stamp)
        if self._stamps[index] == stamp:
            return self._samples[index].value

        before = self._samples[index - 1]
        after = self._samples[index]
        ratio = (t - before.timestamp) / (after.timestamp - before.timestamp)
        return self._lerp(before.value, after.value, ratio)

    def covers(self, t: Seconds) -> bool:
        """t 是否在可插值区间 [earliest, latest] 内"""
        require_unit(t, Seconds, 't')
        return (len(self._stamps) >= 2
                and self._stamps[0] <= t.value <= self._stamps[-1])

    def earliest(self) -> Optional[TimestampedSample]:
        return self._samples[0] if self._samples else None

    def latest(self) -> Optional[TimestampedSample]:
        return self._samples[-1] if self._samples else None

    def samples(self) -> List[TimestampedSample]:
        """全部样本 (升序) 的副本"""
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def out_of_order_tolerance(self) -> Seconds:
        return self._tolerance

    # ------------------------------------------------------------------
    # 删除
    # ------------------------------------------------------------------

    def pop_until(self, t: Seconds) -> List[TimestampedSample]:
        """移除并返回时间戳 <= t 的样本 (升序)"""
        require_unit(t, Seconds, 't')
        index = bisect_right(self._stamps, t.value)
        popped = self._samples[:index]
        del self._stamps[:index]
        del self._samples[:index]
        return popped

    def prune_before(self, t: Seconds) -> int:
        """
        移除时间戳 < t 的样本

        Returns:
            移除的样本数
        """
        require_unit(t, Seconds, 't')
        index = bisect_left(self._stamps, t.value)
        del self._stamps[:index]
        del self._samples[:index]
        return index

    def clear(self) -> None:
        self._stamps.clear()
        self._samples.clear()

    def reconfigure(self, capacity: int, out_of_order_tolerance: Seconds) -> None:
        """修改容量与容差，等同于重新初始化 (清空内容和统计)"""
        self._validate_params(capacity, out_of_order_tolerance)
        self._capacity = int(capacity)
        self._tolerance = out_of_order_tolerance
        self.clear()
        self._appended = 0
        self._reordered = 0
        self._rejected_out_of_order = 0
        self._rejected_duplicate = 0
        self._evicted = 0
        logger.info(f"[{self._name}] reconfigured: capacity={capacity}, "
                    f"tolerance={out_of_order_tolerance}")

    def stats(self) -> Dict[str, Any]:
        """统计信息"""
        return {
            'size': len(self._samples),
            'capacity': self._capacity,
            'appended': self._appended,
            'reordered': self._reordered,
            'rejected_out_of_order': self._rejected_out_of_order,
            'rejected_duplicate': self._rejected_duplicate,
            'evicted': self._evicted,
            'earliest': self._stamps[0] if self._stamps else None,
            'latest': self._stamps[-1] if self._stamps else None,
        }
