"""
速度平滑工具

统一的饱和限幅与斜率限制，控制器和控制循环共用。
"""
from typing import Optional

import numpy as np

from .data_types import ControlInput
from .quantities import MetersPerSecond, RadiansPerSecond, Seconds, require_unit


class VelocitySmoother:
    """
    速度平滑器

    用于限制控制命令的加速度，确保相邻两次命令的变化量不超过
    a_max·dt (线速度) 和 alpha_max·dt (角速度)。

    使用示例:
        smoother = VelocitySmoother(a_max=1.0, alpha_max=2.0)
        smoothed = smoother.smooth(new_cmd, last_cmd, Seconds(0.02))
    """

    def __init__(self, a_max: float, alpha_max: float):
        """
        Args:
            a_max: 最大线加速度 (m/s²)
            alpha_max: 最大角加速度 (rad/s²)
        """
        self.a_max = a_max
        self.alpha_max = alpha_max

    def max_dv(self, dt: Seconds) -> float:
        """dt 内允许的最大线速度变化量"""
        return self.a_max * require_unit(dt, Seconds, 'dt').value

    def max_domega(self, dt: Seconds) -> float:
        """dt 内允许的最大角速度变化量"""
        return self.alpha_max * require_unit(dt, Seconds, 'dt').value

    def smooth(self, cmd: ControlInput, last_cmd: Optional[ControlInput],
               dt: Seconds) -> ControlInput:
        """
        斜率限制

        Args:
            cmd: 新的控制命令
            last_cmd: 上一次的控制命令，如果为 None 则不进行平滑
            dt: 两次命令之间的时间间隔

        Returns:
            平滑后的控制命令
        """
        if last_cmd is None:
            return cmd

        max_dv = self.max_dv(dt)
        max_domega = self.max_domega(dt)
        v = np.clip(cmd.linear.value,
                    last_cmd.linear.value - max_dv,
                    last_cmd.linear.value + max_dv)
        omega = np.clip(cmd.angular.value,
                        last_cmd.angular.value - max_domega,
                        last_cmd.angular.value + max_domega)
        return ControlInput.from_values(float(v), float(omega))

    def smooth_to_stop(self, last_cmd: Optional[ControlInput],
                       dt: Seconds) -> ControlInput:
        """
        平滑停止

        Args:
            last_cmd: 上一次的控制命令
            dt: 时间间隔

        Returns:
            向零减速一步后的控制命令
        """
        if last_cmd is None:
            return ControlInput.zero()

        def smooth_to_zero(value: float, max_change: float) -> float:
            if abs(value) <= max_change:
                return 0.0
            return value - max_change if value > 0 else value + max_change

        return ControlInput.from_values(
            smooth_to_zero(last_cmd.linear.value, self.max_dv(dt)),
            smooth_to_zero(last_cmd.angular.value, self.max_domega(dt)),
        )


def saturate(cmd: ControlInput, v_min: float, v_max: float,
             omega_max: float) -> ControlInput:
    """
    输出饱和

    Args:
        cmd: 原始命令
        v_min, v_max: 线速度范围 (m/s)
        omega_max: 最大角速度幅值 (rad/s)
    """
    v = float(np.clip(cmd.linear.value, v_min, v_max))
    omega = float(np.clip(cmd.angular.value, -omega_max, omega_max))
    return ControlInput(MetersPerSecond(v), RadiansPerSecond(omega))
