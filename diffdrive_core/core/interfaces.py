"""接口定义"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .data_types import (
    ControlInput, Covariance3, EstimatorOutput, Pose2, PoseBeliefState,
)
from .enums import CorrectionResult
from .quantities import Seconds


class ILifecycleComponent(ABC):
    """
    统一生命周期组件接口

    核心方法 (必须实现):
    - reset(): 重置内部状态，保留资源，可继续使用

    可选方法 (有默认实现):
    - get_health_status(): 获取组件健康状态

    使用示例:
        class SimpleGuard(ILifecycleComponent):
            def reset(self) -> None:
                self._anomaly_count = 0
    """

    @abstractmethod
    def reset(self) -> None:
        """
        重置组件内部状态

        调用后组件应恢复到初始状态，但保留已分配的资源。
        """
        pass

    def get_health_status(self) -> Optional[Dict[str, Any]]:
        """
        获取组件健康状态

        Returns:
            健康状态字典，或 None 表示不支持。字典至少包含
            'healthy' (bool) 和 'message' (str)。
        """
        return None


class IPoseEstimator(ABC):
    """
    位姿估计器接口

    predict/correct 是信念的唯一修改入口。reset 需要新的先验，
    因此不继承 ILifecycleComponent 的无参 reset。
    """

    @abstractmethod
    def initialize(self, prior_pose: Pose2, prior_covariance: Covariance3,
                   t0: Seconds) -> None:
        pass

    @abstractmethod
    def reset(self, prior_pose: Pose2, prior_covariance: Covariance3,
              t0: Seconds) -> None:
        pass

    @abstractmethod
    def predict(self, u: ControlInput, t: Seconds) -> None:
        pass

    @abstractmethod
    def correct(self, measurement, R=None) -> CorrectionResult:
        pass

    @abstractmethod
    def current_belief(self) -> PoseBeliefState:
        pass

    @abstractmethod
    def get_state(self) -> EstimatorOutput:
        pass


class IGoalController(ILifecycleComponent):
    """目标跟踪控制器接口"""

    @abstractmethod
    def update(self, belief: PoseBeliefState, goal: Optional[Pose2],
               t: Seconds) -> ControlInput:
        pass

    @abstractmethod
    def set_goal(self, goal: Pose2) -> None:
        pass

    @abstractmethod
    def cancel(self) -> None:
        pass
