"""
目标跟踪控制器测试

测试覆盖:
1. 首次更新只建立时间基准
2. 输出饱和与斜率限制
3. 积分限幅与跨 ±π 的微分
4. 到达目标 / 取消目标的模式切换
5. 时间间隔异常的降级策略 (hold / zero / fault)
"""
import math

import pytest

from diffdrive_core.core.data_types import ControlInput, Pose2
from diffdrive_core.core.enums import ControllerMode, DegradationPolicy
from diffdrive_core.core.exceptions import OrderingError, QuantityError, TimingFaultError
from diffdrive_core.core.quantities import Seconds
from diffdrive_core.tracker.go_to_goal import GoToGoalController
from diffdrive_core.tests.fixtures import make_belief, make_config

DT = 0.02
EPS = 1e-9


def make_controller(overrides=None) -> GoToGoalController:
    return GoToGoalController(make_config(overrides))


def run(controller, goal, steps, belief=None, start=0):
    """以固定周期运行 steps 次，返回命令列表"""
    belief = belief or make_belief()
    commands = []
    for k in range(start, start + steps):
        commands.append(controller.update(belief, goal, Seconds(k * DT)))
    return commands


class TestFirstUpdate:
    """测试首次更新"""

    def test_establishes_time_base(self):
        controller = make_controller()
        goal = Pose2.from_values(1.0, 0.0, 0.0)
        cmd = controller.update(make_belief(), goal, Seconds(0.0))
        assert cmd.is_zero
        assert controller.mode == ControllerMode.TRACKING
        assert controller.controller_state.last_update_timestamp == Seconds(0.0)
        assert controller.controller_state.previous_error is None

    def test_second_update_slew_limited(self):
        controller = make_controller()
        goal = Pose2.from_values(1.0, 0.0, 0.0)
        commands = run(controller, goal, 2)
        # 原始 v = 0.8 m/s，饱和到 0.5，再限制为 a_max·dt = 0.01
        assert commands[1].linear.value == pytest.approx(0.5 * DT)
        assert commands[1].angular.value == pytest.approx(0.0)


class TestBounds:
    """测试饱和与斜率限制"""

    @pytest.mark.parametrize('goal_xy', [(1.0, 0.0), (0.0, 1.0), (-1.0, 0.1), (3.0, -4.0)])
    def test_saturation_and_slew(self, goal_xy):
        config = make_config()
        constraints = config['constraints']
        controller = GoToGoalController(config)
        goal = Pose2.from_values(goal_xy[0], goal_xy[1], 0.0)
        commands = run(controller, goal, 200)

        previous = ControlInput.zero()
        for cmd in commands:
            assert 0.0 <= cmd.linear.value <= constraints['v_max'] + EPS
            assert abs(cmd.angular.value) <= constraints['omega_max'] + EPS
            assert abs(cmd.linear.value - previous.linear.value) <= constraints['a_max'] * DT + EPS
            assert abs(cmd.angular.value - previous.angular.value) <= \
                constraints['alpha_max'] * DT + EPS
            previous = cmd

    def test_reaches_v_max(self):
        controller = make_controller()
        commands = run(controller, Pose2.from_values(10.0, 0.0, 0.0), 100)
        assert commands[-1].linear.value == pytest.approx(0.5)

    def test_turn_in_place_when_goal_behind(self):
        controller = make_controller()
        commands = run(controller, Pose2.from_values(-1.0, 0.0, 0.0), 10)
        assert all(cmd.linear.value == 0.0 for cmd in commands)
        assert commands[-1].angular.value > 0.0

    def test_integral_clamped(self):
        controller = make_controller()
        run(controller, Pose2.from_values(0.0, 1.0, 0.0), 100)
        assert abs(controller.controller_state.integral_accumulator) <= 0.5 + EPS

    def test_derivative_uses_shortest_error_change(self):
        controller = make_controller({'controller': {'gains': {'kp': 0.0, 'ki': 0.0, 'kd': 0.01}}})
        goal = Pose2.from_values(-100.0, 0.0, 0.0)
        controller.update(make_belief(yaw=0.0), goal, Seconds(0.0))
        controller.update(make_belief(yaw=0.02), goal, Seconds(DT))
        cmd = controller.update(make_belief(yaw=-0.02), goal, Seconds(2 * DT))
        # 误差从 π-0.02 变为 -π+0.02，实际只变化 +0.04 rad
        assert cmd.angular.value == pytest.approx(0.01 * 0.04 / DT)


class TestModes:
    """测试模式切换"""

    def test_goal_reached(self):
        controller = make_controller()
        goal = Pose2.from_values(1.0, 0.0, 0.0)
        run(controller, goal, 50)
        assert controller.mode == ControllerMode.TRACKING
        moving = controller.last_command.linear.value
        assert moving > 0.0

        commands = run(controller, goal, 200, belief=make_belief(x=0.98), start=50)
        assert controller.mode == ControllerMode.IDLE
        assert controller.controller_state.integral_accumulator == 0.0
        assert commands[0].linear.value == pytest.approx(moving - 0.5 * DT)
        assert commands[-1].is_zero

    def test_same_goal_stays_idle(self):
        controller = make_controller()
        goal = Pose2.from_values(0.01, 0.0, 0.0)
        run(controller, goal, 5)
        assert controller.mode == ControllerMode.IDLE
        run(controller, goal, 5, start=5)
        assert controller.mode == ControllerMode.IDLE

    def test_new_goal_resets_history(self):
        controller = make_controller()
        run(controller, Pose2.from_values(0.0, 1.0, 0.0), 20)
        assert controller.controller_state.integral_accumulator != 0.0
        controller.update(make_belief(), Pose2.from_values(0.0, -1.0, 0.0), Seconds(20 * DT))
        state = controller.controller_state
        # 新目标清空历史后本周期重新积分一次
        assert state.integral_accumulator == pytest.approx(-math.pi / 2 * DT)

    def test_none_goal_cancels(self):
        controller = make_controller()
        run(controller, Pose2.from_values(1.0, 0.0, 0.0), 10)
        controller.update(make_belief(), None, Seconds(10 * DT))
        assert controller.mode == ControllerMode.IDLE
        assert controller.goal is None

    def test_set_goal_requires_pose(self):
        controller = make_controller()
        with pytest.raises(QuantityError):
            controller.set_goal((1.0, 0.0, 0.0))

    def test_reset_keeps_last_command(self):
        controller = make_controller()
        run(controller, Pose2.from_values(1.0, 0.0, 0.0), 20)
        last = controller.last_command
        controller.reset()
        assert controller.mode == ControllerMode.IDLE
        assert controller.controller_state.last_update_timestamp is None
        assert controller.last_command == last

    def test_reconfigure_respects_new_limits(self):
        controller = make_controller()
        goal = Pose2.from_values(10.0, 0.0, 0.0)
        run(controller, goal, 200)
        assert controller.last_command.linear.value == pytest.approx(0.5)

        controller.reconfigure(make_config({'constraints': {'v_max': 0.1, 'omega_max': 0.2}}))
        assert controller.last_command.linear.value <= 0.1 + EPS
        cmd = controller.update(make_belief(), goal, Seconds(200 * DT))
        assert cmd.linear.value <= 0.1 + EPS
        for cmd in run(controller, goal, 50, start=201):
            assert cmd.linear.value <= 0.1 + EPS
            assert abs(cmd.angular.value) <= 0.2 + EPS

    def test_stop_slews_to_zero(self):
        controller = make_controller()
        run(controller, Pose2.from_values(1.0, 0.0, 0.0), 20)
        last = controller.last_command
        cmd = controller.stop(Seconds(20 * DT))
        assert cmd.linear.value == pytest.approx(max(last.linear.value - 0.5 * DT, 0.0))
        assert controller.controller_state.previous_error is None


class TestOrderingAndTiming:
    """测试时间顺序与降级策略"""

    def test_backwards_time_rejected(self):
        controller = make_controller()
        run(controller, Pose2.from_values(1.0, 0.0, 0.0), 5)
        state_before = (controller.controller_state.integral_accumulator, controller.last_command)
        with pytest.raises(OrderingError):
            controller.update(make_belief(), Pose2.from_values(1.0, 0.0, 0.0), Seconds(0.0))
        assert state_before == (controller.controller_state.integral_accumulator,
                                controller.last_command)

    def test_hold_policy(self):
        controller = make_controller()
        goal = Pose2.from_values(0.0, 1.0, 0.0)
        run(controller, goal, 10)
        last = controller.last_command
        integral = controller.controller_state.integral_accumulator

        cmd = controller.update(make_belief(), goal, Seconds(9 * DT + 0.1))
        assert cmd == last
        assert controller.controller_state.integral_accumulator == integral
        assert controller.get_diagnostics()['timing_anomaly_count'] == 1

        # 时间基准已前移，下一个正常间隔恢复控制
        cmd = controller.update(make_belief(), goal, Seconds(9 * DT + 0.1 + DT))
        assert controller.get_diagnostics()['timing_anomaly_count'] == 1
        assert controller.controller_state.integral_accumulator != integral

    def test_zero_policy(self):
        controller = make_controller({'timing': {'controller_policy': 'zero'}})
        goal = Pose2.from_values(10.0, 0.0, 0.0)
        run(controller, goal, 30)
        last = controller.last_command
        cmd = controller.update(make_belief(), goal, Seconds(29 * DT + 1.0))
        # 减速量以期望周期为上限
        assert cmd.linear.value == pytest.approx(last.linear.value - 0.5 * DT)

    def test_fault_policy(self):
        controller = make_controller({'timing': {'controller_policy': 'fault'}})
        goal = Pose2.from_values(1.0, 0.0, 0.0)
        run(controller, goal, 5)
        last = controller.last_command
        with pytest.raises(TimingFaultError):
            controller.update(make_belief(), goal, Seconds(4 * DT + 0.1))
        assert controller.last_command == last
        assert controller.controller_state.last_update_timestamp == Seconds(4 * DT)

        # 异常周期带来的新目标也不生效，历史保持不变
        previous_error = controller.controller_state.previous_error
        integral = controller.controller_state.integral_accumulator
        with pytest.raises(TimingFaultError):
            controller.update(make_belief(), Pose2.from_values(0.0, 1.0, 0.0), Seconds(4 * DT + 0.1))
        assert controller.goal == goal
        assert controller.mode == ControllerMode.TRACKING
        assert controller.controller_state.previous_error == previous_error
        assert controller.controller_state.integral_accumulator == integral

    def test_skip_policy_behaves_as_hold(self):
        controller = make_controller({'timing': {'controller_policy': 'skip'}})
        assert controller.policy == DegradationPolicy.HOLD

    def test_requires_belief_state(self):
        controller = make_controller()
        with pytest.raises(QuantityError):
            controller.update(Pose2.from_values(0, 0, 0), None, Seconds(0.0))

    def test_diagnostics(self):
        controller = make_controller()
        run(controller, Pose2.from_values(1.0, 0.0, 0.0), 3)
        diag = controller.get_diagnostics()
        assert diag['mode'] == 'TRACKING'
        assert diag['goal'] == {'x': 1.0, 'y': 0.0, 'yaw': 0.0}
        assert controller.last_command_age(Seconds(3 * DT)).value == pytest.approx(DT)
        assert controller.get_health_status()['healthy']


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
