"""
测试数据生成器

提供配置副本与常用数据对象的构造函数，测试之间互不共享可变配置。
"""
import copy
from typing import Any, Dict, Optional

from diffdrive_core.config.default_config import DEFAULT_CONFIG
from diffdrive_core.config.loader import merge_config
from diffdrive_core.core.data_types import (
    ControlInput, Covariance3, Pose2, PoseBeliefState,
)
from diffdrive_core.core.quantities import Seconds


def make_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """DEFAULT_CONFIG 的深拷贝，可选地合并覆盖项"""
    return merge_config(copy.deepcopy(DEFAULT_CONFIG), overrides)


def make_belief(x: float = 0.0, y: float = 0.0, yaw: float = 0.0,
                t: float = 0.0, variance: float = 0.0) -> PoseBeliefState:
    """构造位姿信念快照"""
    return PoseBeliefState(
        mean=Pose2.from_values(x, y, yaw),
        covariance=Covariance3.from_diagonal(variance, variance, variance),
        timestamp=Seconds(t),
    )


def make_command(v: float = 0.0, omega: float = 0.0) -> ControlInput:
    return ControlInput.from_values(v, omega)
