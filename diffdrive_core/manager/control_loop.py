"""
控制循环

协调时间缓冲区、位姿信念、控制器、固定步长保护与命令看门狗。

数据流:
    add_control_sample(u, t)  → 控制输入缓冲区 (观测到的轮速)
    add_measurement(z)        → 待处理测量队列
    tick(t, goal):
        1. 固定步长保护 (estimator_policy)
        2. 按时间顺序释放 <= t 的测量: predict 到测量时间 → correct
        3. predict 到 t
        4. 信念发散 → 减速停车；否则控制器 update
        5. 看门狗记录命令

预测使用区间中点的插值控制输入；缓冲区无法覆盖中点时不外推，
信念停留在原时间并记录异常。

线程安全性:
    - tick()/add_*() 不是线程安全的，应在单个线程中调用
    - 多个生产者线程时，调用者需要在外部加锁

使用示例:
    loop = ControlLoop(config)
    loop.initialize(Pose2.from_values(0, 0, 0), t0=Seconds(0.0))

    # 传感器回调
    loop.add_control_sample(u, t_u)
    loop.add_measurement(PositionMeasurement(x, y, t_z))

    # 控制定时器
    cmd = loop.tick(now, goal)
"""
import logging
from collections import Counter
from dataclasses import asdict
from typing import Any, Dict, Optional

from ..buffer.time_buffer import TimeBuffer, control_input_lerp
from ..config.default_config import validate_config
from ..config.validation import ValidationSeverity
from ..core.data_types import (
    ControlInput, Covariance3, HeadingMeasurement, Pose2, PoseMeasurement,
    PositionMeasurement, TimestampedSample,
)
from ..core.enums import DegradationPolicy, PushResult
from ..core.exceptions import (
    ConfigValidationError, InvalidStateError, OrderingError, QuantityError, TimingFaultError,
)
from ..core.logging_config import ThrottledLogger
from ..core.quantities import Seconds, require_unit
from ..estimator.pose_ekf import PoseBeliefEKF
from ..safety.command_watchdog import CommandWatchdog
from ..safety.fixed_step_guard import FixedStepGuard
from ..tracker.go_to_goal import GoToGoalController

logger = logging.getLogger(__name__)

MEASUREMENT_TYPES = (PositionMeasurement, HeadingMeasurement, PoseMeasurement)


class ControlLoop:
    """
    控制循环

    配置验证:
        - 默认在初始化时进行配置验证（可通过 validate_config=False 禁用）
        - FATAL 级别错误始终抛出异常
        - ERROR 级别错误记录警告；strict_mode=True 时抛出异常
    """

    def __init__(self, config: Dict[str, Any], validate_config: bool = True,
                 strict_mode: bool = False):
        self.config = config
        if validate_config:
            self._validate_config(strict_mode)

        self.estimator = PoseBeliefEKF(config)
        self.controller = GoToGoalController(config)
        self.guard = FixedStepGuard.from_config(config)
        self.watchdog = CommandWatchdog(config)

        buffer_config = config.get('buffer', {})
        tolerance = Seconds(buffer_config.get('out_of_order_tolerance', 0.05))
        self.control_buffer: TimeBuffer[ControlInput] = TimeBuffer(
            buffer_config.get('capacity', 200), tolerance,
            lerp=control_input_lerp, name='control')
        self.measurement_buffer: TimeBuffer = TimeBuffer(
            buffer_config.get('measurement_capacity', 50), tolerance,
            lerp=None, name='measurements')
        self.measurement_max_age = Seconds(buffer_config.get('measurement_max_age', 0.5))

        policy = DegradationPolicy.parse(config.get('timing', {}).get('estimator_policy', 'hold'))
        if policy == DegradationPolicy.ZERO:
            policy = DegradationPolicy.HOLD
        self.estimator_policy = policy

        self._last_tick: Optional[Seconds] = None
        self._last_command = ControlInput.zero()
        self._throttled = ThrottledLogger(logger, min_interval=2.0)
        self._reset_counters()

    def _validate_config(self, strict_mode: bool) -> None:
        errors = validate_config(self.config, raise_on_error=False)
        fatal = [(k, m) for k, m, s in errors if s == ValidationSeverity.FATAL]
        blocking = [(k, m) for k, m, s in errors if s == ValidationSeverity.ERROR]
        if fatal or (blocking and strict_mode):
            reported = fatal + blocking
            error_messages = '\n'.join([f'  - {key}: {msg}' for key, msg in reported])
            raise ConfigValidationError(f'配置验证失败:\n{error_messages}', reported)
        if blocking:
            error_messages = '\n'.join([f'  - {key}: {msg}' for key, msg in blocking])
            logger.warning(f'配置验证发现问题 (非严格模式，继续运行):\n{error_messages}')

    def _reset_counters(self) -> None:
        self._tick_count = 0
        self._estimator_timing_anomalies = 0
        self._skipped_ticks = 0
        self._dropped_measurements = 0
        self._unavailable_inputs = 0
        self._diverged_ticks = 0
        self._correction_results: Counter = Counter()

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def initialize(self, prior_pose: Pose2, prior_covariance: Optional[Covariance3] = None,
                   t0: Seconds = None) -> None:
        """初始化信念并开始看门狗启动宽限期"""
        self.estimator.initialize(prior_pose, prior_covariance, t0)
        self.watchdog.reset(now=t0)
        self._last_tick = None

    def reset(self, prior_pose: Pose2, prior_covariance: Optional[Covariance3] = None,
              t0: Seconds = None) -> None:
        """
        以新的先验重新开始

        清空缓冲区、控制器记忆与统计；信念对象被重置而不是重建。
        """
        self.estimator.reset(prior_pose, prior_covariance, t0)
        self.controller.reset()
        self.control_buffer.clear()
        self.measurement_buffer.clear()
        self.watchdog.reset(now=t0)
        self._last_tick = None
        self._reset_counters()
        logger.info("Control loop reset")

    # ------------------------------------------------------------------
    # 输入
    # ------------------------------------------------------------------

    def add_control_sample(self, u: ControlInput, t: Seconds) -> PushResult:
        """记录一个观测到的控制输入 (用于预测)"""
        if not isinstance(u, ControlInput):
            raise QuantityError(f"u must be ControlInput, got {type(u).__name__}")
        return self.control_buffer.push(TimestampedSample(u, t))

    def add_measurement(self, measurement) -> PushResult:
        """加入待处理测量，下一次 tick 时按时间顺序融合"""
        if not isinstance(measurement, MEASUREMENT_TYPES):
            raise QuantityError(f"unsupported measurement type: {type(measurement).__name__}")
        return self.measurement_buffer.push(TimestampedSample(measurement, measurement.timestamp))

    # ------------------------------------------------------------------
    # 主循环
    # ------------------------------------------------------------------

    def tick(self, t: Seconds, goal: Optional[Pose2] = None) -> ControlInput:
        """
        执行一次控制周期

        Args:
            t: 当前时间 (单调时钟)
            goal: 目标位姿，None 表示无目标

        Returns:
            有界的控制命令

        Raises:
            InvalidStateError: 尚未初始化
            OrderingError: t 早于上一次 tick
            TimingFaultError: 时间间隔异常且策略为 fault
        """
        if not self.estimator.is_initialized:
            raise InvalidStateError("control loop not initialized")
        require_unit(t, Seconds, 't')
        if self._last_tick is not None and t < self._last_tick:
            raise OrderingError(
                f"tick time {t.value:.6f}s is before last tick {self._last_tick.value:.6f}s")

        # 1. 时间间隔保护
        advance_belief = True
        if self._last_tick is not None:
            dt = t - self._last_tick
            if not self.guard.acceptable(dt):
                verdict = self.guard.classify(dt)
                if self.estimator_policy == DegradationPolicy.FAULT:
                    raise TimingFaultError(
                        f"tick interval {dt.value:.6f}s rejected ({verdict.name})")
                self._estimator_timing_anomalies += 1
                if self.estimator_policy == DegradationPolicy.SKIP:
                    advance_belief = False
                    self._skipped_ticks += 1
                self._throttled.warning(
                    f"Tick interval {dt.value * 1000:.2f} ms rejected ({verdict.name}), "
                    f"estimator policy={self.estimator_policy.value}", key='timing')

        # 2-3. 信念推进
        if advance_belief:
            waiting = self._process_measurements(t)
            if not waiting:
                self._predict_to(t)

        # 4. 控制
        if self.estimator.diverged:
            self._diverged_ticks += 1
            self._throttled.error("Belief diverged, commanding stop until reset", key='diverged')
            command = self.controller.stop(t)
        else:
            command = self.controller.update(self.estimator.current_belief(), goal, t)

        # 5. 看门狗
        self.watchdog.notify_command(now=t)
        self._last_command = command
        self._last_tick = t
        self._tick_count += 1
        return command

    def _process_measurements(self, t: Seconds) -> bool:
        """
        按时间顺序融合时间戳 <= t 的测量

        Returns:
            True 表示有测量在等待控制输入，本周期不应推进信念越过它
        """
        pending = self.measurement_buffer.samples()
        processed: Optional[Seconds] = None
        waiting = False

        for sample in pending:
            if sample.timestamp > t:
                break
            if not self._predict_to(sample.timestamp):
                if t - sample.timestamp > self.measurement_max_age:
                    self._dropped_measurements += 1
                    self._throttled.warning(
                        f"Measurement at t={sample.timestamp.value:.3f}s dropped: no control "
                        f"input available within {self.measurement_max_age.value:.3f}s",
                        key='dropped')
                    processed = sample.timestamp
                    continue
                waiting = True
                break
            result = self.estimator.correct(sample.value)
            self._correction_results[result.name] += 1
            processed = sample.timestamp

        if processed is not None:
            self.measurement_buffer.pop_until(processed)
        return waiting

    def _predict_to(self, t: Seconds) -> bool:
        """
        用区间中点的插值控制输入把信念推进到 t

        Returns:
            False 表示控制输入不可用，信念未推进
        """
        belief_t = self.estimator.timestamp
        if t <= belief_t:
            return True
        midpoint = belief_t + (t - belief_t) * 0.5
        u = self.control_buffer.interpolate(midpoint)
        if u is None:
            self._unavailable_inputs += 1
            self._throttled.warning(
                f"No control input covering t={midpoint.value:.3f}s, belief held at "
                f"t={belief_t.value:.3f}s", key='unavailable')
            return False
        self.estimator.predict(u, t)
        return True

    # ------------------------------------------------------------------
    # 只读访问
    # ------------------------------------------------------------------

    @property
    def last_command(self) -> ControlInput:
        return self._last_command

    def last_command_age(self, now: Optional[Seconds] = None) -> Optional[Seconds]:
        return self.watchdog.last_command_age(now)

    def get_diagnostics(self, now: Optional[Seconds] = None) -> Dict[str, Any]:
        """汇总各组件的可观测量"""
        if now is None:
            now = self._last_tick
        return {
            'tick_count': self._tick_count,
            'last_tick': self._last_tick.value if self._last_tick is not None else None,
            'last_command': self._last_command.to_dict(),
            'estimator': self.estimator.get_state().to_dict(),
            'controller': self.controller.get_diagnostics(),
            'watchdog': asdict(self.watchdog.check(now)) if now is not None else None,
            'control_buffer': self.control_buffer.stats(),
            'measurement_buffer': self.measurement_buffer.stats(),
            'estimator_timing_anomalies': self._estimator_timing_anomalies,
            'skipped_ticks': self._skipped_ticks,
            'dropped_measurements': self._dropped_measurements,
            'unavailable_inputs': self._unavailable_inputs,
            'diverged_ticks': self._diverged_ticks,
            'correction_results': dict(self._correction_results),
        }
