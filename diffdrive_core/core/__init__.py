"""核心模块"""
from .enums import (
    EstimatorState, ControllerMode, PushResult, CorrectionResult,
    TimingVerdict, DegradationPolicy,
)
from .quantities import (
    Quantity, Seconds, Timestamp, Meters, Radians,
    MetersPerSecond, RadiansPerSecond, require_unit,
)
from .data_types import (
    Pose2, Covariance3, PoseBeliefState, TimestampedSample,
    ControlInput, ControllerState,
    PositionMeasurement, HeadingMeasurement, PoseMeasurement,
    EstimatorOutput, WatchdogStatus,
)
from .interfaces import ILifecycleComponent, IPoseEstimator, IGoalController
from .velocity_smoother import VelocitySmoother, saturate
from .time_source import get_monotonic_time, monotonic_now
from .constants import (
    EPSILON, EPSILON_SMALL, NEVER_RECEIVED_TIME_MS,
    normalize_angle, angle_difference,
)
from .exceptions import (
    CoreError, ConfigurationError, ConfigValidationError,
    QuantityError, UnitMismatchError, InvalidStateError,
    CoreRuntimeError, OrderingError, BeliefDivergedError, TimingFaultError,
)
