"""
差速车位姿估计与目标跟踪核心 (DiffDrive Core)

版本: v1.0.0

强类型物理量 + 时间缓冲区 + 位姿信念 EKF + PID 目标跟踪。

特性:
- 强类型物理量: 秒/米/弧度/速度各自独立，跨单位运算必须显式转换
- 时间缓冲区: 有界、时间有序、只插值不外推
- 位姿信念: (x, y, yaw) EKF，Joseph 形式更新，卡方门限，发散检测
- 目标跟踪: 航向 PID + 距离比例线速度，饱和与斜率限制
- 时间保护: 固定步长检查 + 可配置降级策略 (hold / zero / skip / fault)
- 无 ROS 依赖，时间由调用者提供

使用示例:
    import copy
    from diffdrive_core import ControlLoop, DEFAULT_CONFIG, Pose2, Seconds

    config = copy.deepcopy(DEFAULT_CONFIG)
    loop = ControlLoop(config)
    loop.initialize(Pose2.from_values(0.0, 0.0, 0.0), t0=Seconds(0.0))

    cmd = loop.tick(Seconds(0.02), goal=Pose2.from_values(1.0, 0.0, 0.0))
"""

__version__ = "1.0.0"
__author__ = "DiffDrive Core Team"

# 导出主要类和配置
from .manager.control_loop import ControlLoop
from .config.default_config import DEFAULT_CONFIG, get_config_value, validate_config
from .config.loader import load_config
from .core.enums import (
    EstimatorState, ControllerMode, PushResult, CorrectionResult,
    TimingVerdict, DegradationPolicy,
)
from .core.quantities import (
    Seconds, Timestamp, Meters, Radians, MetersPerSecond, RadiansPerSecond,
)
from .core.data_types import (
    Pose2, Covariance3, PoseBeliefState, TimestampedSample, ControlInput,
    ControllerState, PositionMeasurement, HeadingMeasurement, PoseMeasurement,
    EstimatorOutput, WatchdogStatus,
)
from .core.interfaces import IPoseEstimator, IGoalController
from .buffer.time_buffer import TimeBuffer
from .estimator.pose_ekf import PoseBeliefEKF
from .tracker.go_to_goal import GoToGoalController
from .safety.fixed_step_guard import FixedStepGuard, acceptable
from .safety.command_watchdog import CommandWatchdog

__all__ = [
    # 版本
    '__version__',
    # 控制循环
    'ControlLoop',
    # 配置
    'DEFAULT_CONFIG', 'get_config_value', 'validate_config', 'load_config',
    # 枚举
    'EstimatorState', 'ControllerMode', 'PushResult', 'CorrectionResult',
    'TimingVerdict', 'DegradationPolicy',
    # 物理量
    'Seconds', 'Timestamp', 'Meters', 'Radians', 'MetersPerSecond', 'RadiansPerSecond',
    # 数据类型
    'Pose2', 'Covariance3', 'PoseBeliefState', 'TimestampedSample', 'ControlInput',
    'ControllerState', 'PositionMeasurement', 'HeadingMeasurement', 'PoseMeasurement',
    'EstimatorOutput', 'WatchdogStatus',
    # 接口
    'IPoseEstimator', 'IGoalController',
    # 组件
    'TimeBuffer', 'PoseBeliefEKF', 'GoToGoalController',
    'FixedStepGuard', 'acceptable', 'CommandWatchdog',
]
