"""
控制循环集成测试

验证缓冲区 → 信念 → 控制器 → 看门狗的完整数据流：
1. 闭环驶向目标
2. 测量按时间顺序融合
3. 控制输入不可用时不外推
4. 估计器降级策略 (hold / skip / fault)
5. 信念发散时平滑停车
6. 配置验证与严格模式
"""
import pytest

from diffdrive_core.core.data_types import (
    ControlInput, Covariance3, HeadingMeasurement, Pose2, PositionMeasurement,
)
from diffdrive_core.core.enums import ControllerMode, PushResult
from diffdrive_core.core.exceptions import (
    ConfigValidationError, InvalidStateError, OrderingError, QuantityError, TimingFaultError,
)
from diffdrive_core.core.quantities import Meters, Radians, Seconds
from diffdrive_core.manager.control_loop import ControlLoop
from diffdrive_core.tests.fixtures import make_config

DT = 0.02
EPS = 1e-9


def make_loop(overrides=None, variance=0.01, **kwargs) -> ControlLoop:
    loop = ControlLoop(make_config(overrides), **kwargs)
    loop.initialize(Pose2.from_values(0.0, 0.0, 0.0),
                    Covariance3.from_diagonal(variance, variance, variance),
                    Seconds(0.0))
    return loop


def drive(loop: ControlLoop, goal, steps: int, start: int = 0):
    """
    模拟理想执行器: 每个周期先把上一次命令作为观测到的控制输入，再 tick

    Returns:
        命令列表
    """
    commands = []
    for k in range(start, start + steps):
        t = Seconds(k * DT)
        loop.add_control_sample(loop.last_command, t)
        commands.append(loop.tick(t, goal))
    return commands


class TestClosedLoop:
    """测试闭环行为"""

    def test_drives_to_goal(self):
        loop = make_loop()
        goal = Pose2.from_values(0.3, 0.0, 0.0)
        commands = drive(loop, goal, 500)

        assert loop.controller.mode == ControllerMode.IDLE
        belief = loop.estimator.current_belief()
        assert belief.mean.distance_to(goal).value <= 0.06
        assert commands[-1].is_zero

    def test_commands_bounded(self):
        config = make_config()
        constraints = config['constraints']
        loop = make_loop()
        commands = drive(loop, Pose2.from_values(1.0, 1.0, 0.0), 300)

        previous = ControlInput.zero()
        for cmd in commands:
            assert 0.0 <= cmd.linear.value <= constraints['v_max'] + EPS
            assert abs(cmd.angular.value) <= constraints['omega_max'] + EPS
            assert abs(cmd.linear.value - previous.linear.value) <= constraints['a_max'] * DT + EPS
            assert abs(cmd.angular.value - previous.angular.value) <= \
                constraints['alpha_max'] * DT + EPS
            previous = cmd

    def test_watchdog_notified(self):
        loop = make_loop()
        drive(loop, None, 3)
        assert loop.watchdog.command_count == 3
        assert loop.last_command_age(Seconds(2 * DT + 0.1)).value == pytest.approx(0.1)
        assert not loop.watchdog.check(Seconds(2 * DT + 0.1)).timed_out

    def test_requires_initialize(self):
        loop = ControlLoop(make_config())
        with pytest.raises(InvalidStateError):
            loop.tick(Seconds(0.0))

    def test_backwards_tick_rejected(self):
        loop = make_loop()
        drive(loop, None, 3)
        with pytest.raises(OrderingError):
            loop.tick(Seconds(0.0))


class TestMeasurements:
    """测试测量融合"""

    def test_measurement_fused_in_order(self):
        loop = make_loop()
        loop.add_control_sample(ControlInput.zero(), Seconds(0.0))
        loop.tick(Seconds(0.0))
        loop.add_control_sample(ControlInput.zero(), Seconds(DT))
        result = loop.add_measurement(PositionMeasurement(Meters(0.05), Meters(0.0), Seconds(0.01)))
        assert result == PushResult.APPENDED

        loop.tick(Seconds(DT))
        belief = loop.estimator.current_belief()
        assert belief.mean.x.value > 0.0
        assert belief.timestamp == Seconds(DT)
        assert loop.get_diagnostics()['correction_results'] == {'APPLIED': 1}
        assert len(loop.measurement_buffer) == 0

    def test_future_measurement_waits(self):
        loop = make_loop()
        loop.add_control_sample(ControlInput.zero(), Seconds(0.0))
        loop.add_control_sample(ControlInput.zero(), Seconds(DT))
        loop.tick(Seconds(0.0))
        loop.add_measurement(HeadingMeasurement(Radians(0.05), Seconds(0.05)))
        loop.tick(Seconds(DT))
        # 测量时间晚于 tick，保持待处理
        assert len(loop.measurement_buffer) == 1
        assert loop.estimator.timestamp == Seconds(DT)

    def test_waits_for_control_input(self):
        loop = make_loop()
        loop.add_control_sample(ControlInput.zero(), Seconds(0.0))
        loop.add_control_sample(ControlInput.zero(), Seconds(DT))
        loop.tick(Seconds(0.0))
        loop.tick(Seconds(DT))
        loop.add_measurement(PositionMeasurement(Meters(0.02), Meters(0.0), Seconds(0.03)))

        loop.tick(Seconds(2 * DT))
        # 0.03 之前没有覆盖的控制输入，信念停在 DT，不外推
        assert loop.estimator.timestamp == Seconds(DT)
        assert len(loop.measurement_buffer) == 1
        assert loop.get_diagnostics()['unavailable_inputs'] >= 1

        loop.add_control_sample(ControlInput.zero(), Seconds(2 * DT))
        loop.add_control_sample(ControlInput.zero(), Seconds(3 * DT))
        loop.tick(Seconds(3 * DT))
        assert len(loop.measurement_buffer) == 0
        assert loop.get_diagnostics()['correction_results'] == {'APPLIED': 1}
        assert loop.estimator.timestamp == Seconds(3 * DT)

    def test_expired_measurement_dropped(self):
        loop = make_loop()
        loop.tick(Seconds(0.0))
        loop.add_measurement(PositionMeasurement(Meters(0.0), Meters(0.0), Seconds(0.01)))
        for k in range(1, 30):
            loop.tick(Seconds(k * DT))
        diagnostics = loop.get_diagnostics()
        assert diagnostics['dropped_measurements'] == 1
        assert len(loop.measurement_buffer) == 0
        assert loop.estimator.timestamp == Seconds(0.0)

    def test_stale_measurement_rejected(self):
        loop = make_loop()
        drive(loop, None, 5)
        loop.add_measurement(PositionMeasurement(Meters(1.0), Meters(0.0), Seconds(0.01)))
        drive(loop, None, 1, start=5)
        assert loop.get_diagnostics()['correction_results'] == {'REJECTED_STALE': 1}

    def test_unsupported_measurement(self):
        loop = make_loop()
        with pytest.raises(QuantityError):
            loop.add_measurement(Pose2.from_values(0, 0, 0))
        with pytest.raises(QuantityError):
            loop.add_control_sample((0.1, 0.0), Seconds(0.0))


class TestEstimatorTiming:
    """测试估计器时间间隔策略"""

    def test_hold_proceeds(self):
        loop = make_loop()
        drive(loop, None, 3)
        loop.add_control_sample(ControlInput.zero(), Seconds(0.1))
        loop.tick(Seconds(0.1))
        assert loop.estimator.timestamp == Seconds(0.1)
        assert loop.get_diagnostics()['estimator_timing_anomalies'] == 1

    def test_skip_holds_belief(self):
        loop = make_loop({'timing': {'estimator_policy': 'skip'}})
        drive(loop, None, 3)
        loop.add_control_sample(ControlInput.zero(), Seconds(0.1))
        loop.tick(Seconds(0.1))
        assert loop.estimator.timestamp == Seconds(2 * DT)
        diagnostics = loop.get_diagnostics()
        assert diagnostics['skipped_ticks'] == 1
        assert diagnostics['estimator_timing_anomalies'] == 1

    def test_fault_raises_without_state_change(self):
        loop = make_loop({'timing': {'estimator_policy': 'fault'}})
        drive(loop, None, 3)
        before = loop.estimator.current_belief()
        loop.add_control_sample(ControlInput.zero(), Seconds(0.1))
        with pytest.raises(TimingFaultError):
            loop.tick(Seconds(0.1))
        assert loop.estimator.current_belief() == before
        assert loop.get_diagnostics()['tick_count'] == 3


class TestDivergence:
    """测试信念发散"""

    def test_stops_smoothly(self):
        overrides = {
            'ekf': {
                'process_noise': {'x': 1.0},
                'divergence': {'max_variance': 0.2},
            }
        }
        loop = make_loop(overrides)
        commands = drive(loop, Pose2.from_values(5.0, 0.0, 0.0), 60)

        assert loop.estimator.diverged
        diagnostics = loop.get_diagnostics()
        assert diagnostics['diverged_ticks'] > 0
        assert diagnostics['estimator']['diverged']

        previous = ControlInput.zero()
        for cmd in commands:
            assert abs(cmd.linear.value - previous.linear.value) <= 0.5 * DT + EPS
            previous = cmd
        assert commands[-1].is_zero

    def test_reset_recovers(self):
        overrides = {
            'ekf': {
                'process_noise': {'x': 1.0},
                'divergence': {'max_variance': 0.2},
            }
        }
        loop = make_loop(overrides)
        drive(loop, None, 20)
        assert loop.estimator.diverged

        loop.reset(Pose2.from_values(0.0, 0.0, 0.0), Covariance3.from_diagonal(0.01, 0.01, 0.01),
                   Seconds(1.0))
        assert not loop.estimator.diverged
        assert len(loop.control_buffer) == 0
        assert loop.get_diagnostics()['tick_count'] == 0
        loop.tick(Seconds(1.0))


class TestConfiguration:
    """测试配置验证"""

    def test_fatal_always_raises(self):
        with pytest.raises(ConfigValidationError):
            ControlLoop(make_config({'constraints': {'v_max': 0.0}}))

    def test_error_raises_in_strict_mode(self):
        config = make_config({'timing': {'tolerance': 0.05}})
        with pytest.raises(ConfigValidationError):
            ControlLoop(config, strict_mode=True)
        ControlLoop(config)

    def test_small_measurement_capacity_fatal(self):
        with pytest.raises(ConfigValidationError):
            ControlLoop(make_config({'buffer': {'measurement_capacity': 1}}))

    def test_validation_disabled(self):
        ControlLoop(make_config({'timing': {'tolerance': 0.05}}), validate_config=False)

    def test_zero_estimator_policy_holds(self):
        loop = ControlLoop(make_config({'timing': {'estimator_policy': 'zero'}}))
        assert loop.estimator_policy.value == 'hold'

    def test_diagnostics_keys(self):
        loop = make_loop()
        drive(loop, None, 2)
        diagnostics = loop.get_diagnostics()
        for key in ('tick_count', 'estimator', 'controller', 'watchdog',
                    'control_buffer', 'measurement_buffer'):
            assert key in diagnostics
        assert diagnostics['tick_count'] == 2
        assert diagnostics['watchdog']['timed_out'] is False


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
