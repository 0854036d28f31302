"""
数据类型定义

本模块定义了估计/控制核心使用的数据类型。

坐标系说明:
===========

所有位姿都在一个固定的平面坐标系 (通常是 odom) 下表示:
   - x, y: 位置 (米)
   - yaw: 航向 (弧度)，规范化到 (-π, π]，逆时针为正，0 沿 +X

数据流:
   TimestampedSample[ControlInput] → TimeBuffer → PoseBeliefEKF.predict
   PositionMeasurement / HeadingMeasurement / PoseMeasurement → PoseBeliefEKF.correct
   PoseBeliefState + 目标 Pose2 → GoToGoalController.update → ControlInput

关键数据类型:
   - Pose2: 平面位姿
   - Covariance3: (x, y, yaw) 的 3x3 对称半正定协方差
   - PoseBeliefState: 信念快照 {mean, covariance, timestamp}
   - ControlInput: 线速度/角速度命令
   - ControllerState: 控制器的可变记录 (积分器、上次误差、上次更新时间)
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar
import math

import numpy as np

from .enums import EstimatorState
from .exceptions import QuantityError
from .quantities import (
    Meters, MetersPerSecond, Radians, RadiansPerSecond, Seconds, require_unit,
)
from .validators import (
    has_nonnegative_diagonal, is_finite, is_positive_semidefinite, is_symmetric,
)

T = TypeVar('T')


# =============================================================================
# 位姿
# =============================================================================

@dataclass(frozen=True)
class Pose2:
    """平面位姿

    Attributes:
        x: X 位置
        y: Y 位置
        yaw: 航向，构造时自动规范化到 (-π, π]
    """
    x: Meters
    y: Meters
    yaw: Radians

    def __post_init__(self):
        require_unit(self.x, Meters, 'Pose2.x')
        require_unit(self.y, Meters, 'Pose2.y')
        require_unit(self.yaw, Radians, 'Pose2.yaw')
        object.__setattr__(self, 'yaw', self.yaw.wrap())

    @classmethod
    def from_values(cls, x: float, y: float, yaw: float) -> 'Pose2':
        return cls(Meters(x), Meters(y), Radians(yaw))

    def as_array(self) -> np.ndarray:
        """[x, y, yaw]"""
        return np.array([self.x.value, self.y.value, self.yaw.value])

    def distance_to(self, other: 'Pose2') -> Meters:
        return Meters(math.hypot(other.x.value - self.x.value,
                                 other.y.value - self.y.value))

    def bearing_to(self, other: 'Pose2') -> Radians:
        """从本位姿指向 other 位置的方位角 (世界坐标系)"""
        return Radians(math.atan2(other.y.value - self.y.value,
                                  other.x.value - self.x.value)).wrap()

    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x.value, 'y': self.y.value, 'yaw': self.yaw.value}


# =============================================================================
# 协方差
# =============================================================================

class Covariance3:
    """(x, y, yaw) 3x3 协方差

    不变量:
    - 有限、对称、对角线非负、半正定
    - 内部矩阵只读，matrix 属性返回副本
    """

    __slots__ = ('_matrix',)

    def __init__(self, matrix):
        try:
            arr = np.array(matrix, dtype=float)
        except (TypeError, ValueError) as e:
            raise QuantityError(f"Covariance3 requires a numeric 3x3 matrix: {e}") from e
        if arr.shape != (3, 3):
            raise QuantityError(f"Covariance3 must be 3x3, got shape {arr.shape}")
        if not is_finite(arr):
            raise QuantityError("Covariance3 entries must be finite")
        if not is_symmetric(arr):
            raise QuantityError("Covariance3 must be symmetric")
        if not has_nonnegative_diagonal(arr):
            raise QuantityError(f"Covariance3 diagonal must be non-negative, got {np.diag(arr)}")
        if not is_positive_semidefinite(arr):
            raise QuantityError("Covariance3 must be positive semi-definite")
        arr = (arr + arr.T) / 2.0
        arr.flags.writeable = False
        self._matrix = arr

    @classmethod
    def zeros(cls) -> 'Covariance3':
        return cls(np.zeros((3, 3)))

    @classmethod
    def from_diagonal(cls, var_x: float, var_y: float, var_yaw: float) -> 'Covariance3':
        return cls(np.diag([var_x, var_y, var_yaw]))

    @property
    def matrix(self) -> np.ndarray:
        """协方差矩阵副本"""
        return self._matrix.copy()

    def diagonal(self) -> np.ndarray:
        return np.diag(self._matrix).copy()

    def determinant(self) -> float:
        return float(np.linalg.det(self._matrix))

    def trace(self) -> float:
        return float(np.trace(self._matrix))

    def __eq__(self, other):
        if not isinstance(other, Covariance3):
            return NotImplemented
        return bool(np.array_equal(self._matrix, other._matrix))

    def __hash__(self):
        return hash(self._matrix.tobytes())

    def __repr__(self) -> str:
        return f"Covariance3({self._matrix.tolist()!r})"


# =============================================================================
# 信念
# =============================================================================

@dataclass(frozen=True)
class PoseBeliefState:
    """位姿信念快照 {mean, covariance, timestamp}

    只读快照；唯一可变的信念由 PoseBeliefEKF 持有。
    """
    mean: Pose2
    covariance: Covariance3
    timestamp: Seconds

    def __post_init__(self):
        if not isinstance(self.mean, Pose2):
            raise QuantityError(f"mean must be Pose2, got {type(self.mean).__name__}")
        if not isinstance(self.covariance, Covariance3):
            raise QuantityError(
                f"covariance must be Covariance3, got {type(self.covariance).__name__}")
        require_unit(self.timestamp, Seconds, 'PoseBeliefState.timestamp')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mean': self.mean.to_dict(),
            'covariance': self.covariance.matrix.tolist(),
            'timestamp': self.timestamp.value,
        }


@dataclass(frozen=True)
class TimestampedSample(Generic[T]):
    """带时间戳的样本，构造后不可变"""
    value: T
    timestamp: Seconds

    def __post_init__(self):
        require_unit(self.timestamp, Seconds, 'TimestampedSample.timestamp')


# =============================================================================
# 控制
# =============================================================================

@dataclass(frozen=True)
class ControlInput:
    """差速车运动命令 (机体坐标系)"""
    linear: MetersPerSecond
    angular: RadiansPerSecond

    def __post_init__(self):
        require_unit(self.linear, MetersPerSecond, 'ControlInput.linear')
        require_unit(self.angular, RadiansPerSecond, 'ControlInput.angular')

    @classmethod
    def zero(cls) -> 'ControlInput':
        return cls(MetersPerSecond(0.0), RadiansPerSecond(0.0))

    @classmethod
    def from_values(cls, linear: float, angular: float) -> 'ControlInput':
        return cls(MetersPerSecond(linear), RadiansPerSecond(angular))

    @property
    def is_zero(self) -> bool:
        return self.linear.value == 0.0 and self.angular.value == 0.0

    def to_dict(self) -> Dict[str, float]:
        return {'linear': self.linear.value, 'angular': self.angular.value}


@dataclass
class ControllerState:
    """控制器记忆

    由单个控制器实例独占，不在控制器之间共享或复制。

    Attributes:
        integral_accumulator: 航向误差积分 (rad·s)，受积分限幅
        previous_error: 上一次航向误差 (rad)，None 表示尚无历史
        last_update_timestamp: 上一次 update() 的时间
    """
    integral_accumulator: float = 0.0
    previous_error: Optional[float] = None
    last_update_timestamp: Optional[Seconds] = None

    def reset_history(self) -> None:
        """清空积分器和误差历史，保留时间基准 (新目标时调用)"""
        self.integral_accumulator = 0.0
        self.previous_error = None

    def reset(self) -> None:
        self.reset_history()
        self.last_update_timestamp = None


# =============================================================================
# 测量
# =============================================================================

@dataclass(frozen=True)
class PositionMeasurement:
    """位置测量 (x, y)，例如 GPS/UWB/外部定位"""
    x: Meters
    y: Meters
    timestamp: Seconds

    def __post_init__(self):
        require_unit(self.x, Meters, 'PositionMeasurement.x')
        require_unit(self.y, Meters, 'PositionMeasurement.y')
        require_unit(self.timestamp, Seconds, 'PositionMeasurement.timestamp')


@dataclass(frozen=True)
class HeadingMeasurement:
    """航向测量，例如磁力计/IMU 融合航向"""
    yaw: Radians
    timestamp: Seconds

    def __post_init__(self):
        require_unit(self.yaw, Radians, 'HeadingMeasurement.yaw')
        require_unit(self.timestamp, Seconds, 'HeadingMeasurement.timestamp')
        object.__setattr__(self, 'yaw', self.yaw.wrap())


@dataclass(frozen=True)
class PoseMeasurement:
    """完整位姿测量，例如扫描匹配结果"""
    pose: Pose2
    timestamp: Seconds

    def __post_init__(self):
        if not isinstance(self.pose, Pose2):
            raise QuantityError(f"pose must be Pose2, got {type(self.pose).__name__}")
        require_unit(self.timestamp, Seconds, 'PoseMeasurement.timestamp')


# =============================================================================
# 可观测性
# =============================================================================

@dataclass
class EstimatorOutput:
    """状态估计器输出 (只读观测面)"""
    state: Optional[PoseBeliefState]
    estimator_state: EstimatorState
    diverged: bool = False
    covariance_norm: float = 0.0
    innovation_norm: float = 0.0
    mahalanobis_sq: float = 0.0
    predict_count: int = 0
    correction_count: int = 0
    rejected_count: int = 0
    anomalies: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.to_dict() if self.state is not None else None,
            'estimator_state': self.estimator_state.name,
            'diverged': self.diverged,
            'covariance_norm': self.covariance_norm,
            'innovation_norm': self.innovation_norm,
            'mahalanobis_sq': self.mahalanobis_sq,
            'predict_count': self.predict_count,
            'correction_count': self.correction_count,
            'rejected_count': self.rejected_count,
            'anomalies': list(self.anomalies),
        }


@dataclass
class WatchdogStatus:
    """命令看门狗状态"""
    timed_out: bool
    last_command_age_ms: float
    in_startup_grace: bool = False
