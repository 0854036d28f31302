"""目标跟踪 PID 控制器

航向误差 PID + 按距离比例的线速度，输出经过饱和与斜率限制。

模式:
    IDLE --set_goal / 新目标--> TRACKING --到达目标 / cancel--> IDLE

进入与离开 TRACKING 时清空积分器和上次误差。
"""
import logging
from typing import Any, Dict, Optional

import numpy as np

from ..core.constants import normalize_angle
from ..core.data_types import ControlInput, ControllerState, Pose2, PoseBeliefState
from ..core.enums import ControllerMode, DegradationPolicy
from ..core.exceptions import OrderingError, QuantityError, TimingFaultError
from ..core.interfaces import IGoalController
from ..core.logging_config import ThrottledLogger
from ..core.quantities import Seconds, require_unit
from ..core.velocity_smoother import VelocitySmoother, saturate
from ..safety.fixed_step_guard import FixedStepGuard

logger = logging.getLogger(__name__)


class GoToGoalController(IGoalController):
    """目标跟踪控制器

    控制器记忆 (ControllerState) 由本实例独占。
    """

    def __init__(self, config: Dict[str, Any]):
        self._state = ControllerState()
        self._mode = ControllerMode.IDLE
        self._goal: Optional[Pose2] = None

        self._last_command = ControlInput.zero()
        self._last_command_time: Optional[Seconds] = None
        self._last_heading_error: Optional[float] = None
        self._timing_anomaly_count = 0
        self._goals_reached = 0

        self._throttled = ThrottledLogger(logger, min_interval=2.0)
        self._load_params(config)

    def _load_params(self, config: Dict[str, Any]) -> None:
        controller_config = config.get('controller', {})
        gains = controller_config.get('gains', {})
        self.kp = gains.get('kp', 2.0)
        self.ki = gains.get('ki', 0.1)
        self.kd = gains.get('kd', 0.1)
        self.integral_limit = controller_config.get('integral_limit', 0.5)
        self.k_linear = controller_config.get('k_linear', 0.8)
        self.heading_slowdown = controller_config.get('heading_slowdown', True)
        self.goal_tolerance = controller_config.get('goal_tolerance', 0.05)
        self.goal_change_tolerance = controller_config.get('goal_change_tolerance', 1e-3)

        constraints = config.get('constraints', {})
        self.v_max = constraints.get('v_max', 0.5)
        self.omega_max = constraints.get('omega_max', 1.5)
        self.a_max = constraints.get('a_max', 0.5)
        self.alpha_max = constraints.get('alpha_max', 3.0)

        timing = config.get('timing', {})
        policy = DegradationPolicy.parse(timing.get('controller_policy', 'hold'))
        if policy == DegradationPolicy.SKIP:
            # 跳过一次控制更新等同于保持上一次命令
            logger.warning("controller_policy 'skip' behaves as 'hold' for the controller")
            policy = DegradationPolicy.HOLD
        self.policy = policy

        self._guard = FixedStepGuard.from_config(config)
        self._smoother = VelocitySmoother(a_max=self.a_max, alpha_max=self.alpha_max)

    # ------------------------------------------------------------------
    # 模式控制
    # ------------------------------------------------------------------

    def set_goal(self, goal: Pose2) -> None:
        """设置新目标，进入 TRACKING 并清空积分器与误差历史"""
        if not isinstance(goal, Pose2):
            raise QuantityError(f"goal must be Pose2, got {type(goal).__name__}")
        self._goal = goal
        self._mode = ControllerMode.TRACKING
        self._state.reset_history()
        logger.info(f"New goal: ({goal.x.value:.3f}, {goal.y.value:.3f})")

    def cancel(self) -> None:
        """取消目标，回到 IDLE"""
        if self._mode == ControllerMode.TRACKING:
            logger.info("Goal cancelled")
        self._goal = None
        self._mode = ControllerMode.IDLE
        self._state.reset_history()

    def reset(self) -> None:
        """
        清空控制器记忆与目标

        上一次输出命令保留，重置后的输出仍按斜率限制从该命令连续变化。
        """
        self._state.reset()
        self._goal = None
        self._mode = ControllerMode.IDLE
        self._last_heading_error = None
        self._timing_anomaly_count = 0

    def reconfigure(self, config: Dict[str, Any]) -> None:
        """重新读取参数，等同于重新初始化 (回到 IDLE)"""
        self._load_params(config)
        self.reset()
        # 保留的命令不得超出新的饱和上限
        self._last_command = saturate(self._last_command, 0.0, self.v_max, self.omega_max)
        logger.info("Controller reconfigured")

    def _goal_changed(self, goal: Pose2) -> bool:
        if self._goal is None:
            return True
        if self._goal.distance_to(goal).value > self.goal_change_tolerance:
            return True
        return abs(self._goal.yaw.shortest_to(goal.yaw).value) > self.goal_change_tolerance

    # ------------------------------------------------------------------
    # 控制更新
    # ------------------------------------------------------------------

    def update(self, belief: PoseBeliefState, goal: Optional[Pose2],
               t: Seconds) -> ControlInput:
        """
        计算一次控制命令

        Args:
            belief: 当前位姿信念
            goal: 目标位姿，None 表示无目标
            t: 当前时间

        Returns:
            饱和并经过斜率限制的 ControlInput

        Raises:
            OrderingError: t 早于上一次更新时间，状态不变
            TimingFaultError: 时间间隔异常且策略为 fault，状态不变
        """
        if not isinstance(belief, PoseBeliefState):
            raise QuantityError(f"belief must be PoseBeliefState, got {type(belief).__name__}")
        require_unit(t, Seconds, 't')
        last_t = self._state.last_update_timestamp
        if last_t is not None and t < last_t:
            raise OrderingError(
                f"controller update time {t.value:.6f}s is before last update {last_t.value:.6f}s")

        # fault 策略在修改目标与历史之前抛出
        dt = None if last_t is None else t - last_t
        if dt is not None and not self._guard.acceptable(dt) \
                and self.policy == DegradationPolicy.FAULT:
            raise TimingFaultError(
                f"controller interval {dt.value:.6f}s rejected ({self._guard.classify(dt).name}), "
                f"expected {self._guard.expected.value:.6f}±{self._guard.tolerance.value:.6f}s")

        if goal is None:
            if self._goal is not None:
                self.cancel()
        elif self._goal_changed(goal):
            self.set_goal(goal)

        # 首次更新只建立时间基准
        if dt is None:
            self._state.last_update_timestamp = t
            return self._emit(self._last_command, t)

        if not self._guard.acceptable(dt):
            return self._handle_timing_anomaly(dt, t)

        self._state.last_update_timestamp = t

        if self._mode == ControllerMode.TRACKING:
            distance = belief.mean.distance_to(self._goal)
            if distance.value <= self.goal_tolerance:
                self._mode = ControllerMode.IDLE
                self._state.reset_history()
                self._goals_reached += 1
                logger.info(f"Goal reached (distance {distance.value:.3f} m)")

        if self._mode == ControllerMode.IDLE:
            return self._emit(self._smoother.smooth_to_stop(self._last_command, dt), t)

        raw = self._compute_raw_command(belief, dt)
        limited = saturate(raw, 0.0, self.v_max, self.omega_max)
        return self._emit(self._smoother.smooth(limited, self._last_command, dt), t)

    def stop(self, t: Seconds) -> ControlInput:
        """
        不运行控制律，向零减速一步

        信念不可用 (例如发散) 时由控制循环调用。目标保留，
        积分器与误差历史清空。

        Raises:
            OrderingError: t 早于上一次更新时间
        """
        require_unit(t, Seconds, 't')
        last_t = self._state.last_update_timestamp
        if last_t is not None and t < last_t:
            raise OrderingError(
                f"controller stop time {t.value:.6f}s is before last update {last_t.value:.6f}s")

        self._state.reset_history()
        self._state.last_update_timestamp = t
        if last_t is None or t == last_t:
            return self._emit(self._last_command, t)
        return self._emit(self._smoother.smooth_to_stop(self._last_command, t - last_t), t)

    def _compute_raw_command(self, belief: PoseBeliefState, dt: Seconds) -> ControlInput:
        """PID 控制律，更新积分器与上次误差"""
        pose = belief.mean
        distance = pose.distance_to(self._goal).value
        error = pose.yaw.shortest_to(pose.bearing_to(self._goal)).value

        # 积分 (限幅防止积分饱和)
        integral = self._state.integral_accumulator + error * dt.value
        self._state.integral_accumulator = float(
            np.clip(integral, -self.integral_limit, self.integral_limit))

        # 微分使用上次误差，误差差值跨 ±π 时取最短路径
        previous = self._state.previous_error
        derivative = 0.0 if previous is None else normalize_angle(error - previous) / dt.value
        self._state.previous_error = error
        self._last_heading_error = error

        omega = (self.kp * error
                 + self.ki * self._state.integral_accumulator
                 + self.kd * derivative)

        v = self.k_linear * distance
        if self.heading_slowdown:
            # 背向目标时原地转向
            v *= max(np.cos(error), 0.0)

        return ControlInput.from_values(float(v), float(omega))

    def _handle_timing_anomaly(self, dt: Seconds, t: Seconds) -> ControlInput:
        """时间间隔被拒绝: 不在异常区间上积分"""
        verdict = self._guard.classify(dt)
        self._timing_anomaly_count += 1
        self._state.last_update_timestamp = t
        self._throttled.warning(
            f"Controller interval {dt.value * 1000:.2f} ms rejected ({verdict.name}), "
            f"policy={self.policy.value}", key='timing')

        if self.policy == DegradationPolicy.ZERO and dt.value > 0:
            step = dt if dt < self._guard.expected else self._guard.expected
            return self._emit(self._smoother.smooth_to_stop(self._last_command, step), t)
        return self._emit(self._last_command, t)

    def _emit(self, cmd: ControlInput, t: Seconds) -> ControlInput:
        self._last_command = cmd
        self._last_command_time = t
        return cmd

    # ------------------------------------------------------------------
    # 只读访问
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ControllerMode:
        return self._mode

    @property
    def goal(self) -> Optional[Pose2]:
        return self._goal

    @property
    def last_command(self) -> ControlInput:
        return self._last_command

    @property
    def last_command_time(self) -> Optional[Seconds]:
        return self._last_command_time

    @property
    def controller_state(self) -> ControllerState:
        return self._state

    def last_command_age(self, now: Seconds) -> Optional[Seconds]:
        """距上一次输出命令的时间，尚未输出时返回 None"""
        require_unit(now, Seconds, 'now')
        if self._last_command_time is None:
            return None
        return now - self._last_command_time

    def get_diagnostics(self) -> Dict[str, Any]:
        return {
            'mode': self._mode.name,
            'goal': self._goal.to_dict() if self._goal is not None else None,
            'last_command': self._last_command.to_dict(),
            'last_command_time': (self._last_command_time.value
                                  if self._last_command_time is not None else None),
            'integral_accumulator': self._state.integral_accumulator,
            'previous_error': self._state.previous_error,
            'heading_error': self._last_heading_error,
            'timing_anomaly_count': self._timing_anomaly_count,
            'goals_reached': self._goals_reached,
            'policy': self.policy.value,
        }

    def get_health_status(self) -> Optional[Dict[str, Any]]:
        return {
            'healthy': True,
            'message': f"mode={self._mode.name}, timing anomalies={self._timing_anomaly_count}",
        }
