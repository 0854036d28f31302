"""
通用常量和基础数学函数定义

本模块定义了整个估计/控制核心使用的通用常量和不依赖其他模块的基础数学函数。

常量分类:
=========

1. 数值稳定性常量 (Numerical Stability)
   - 用于避免除零、数值溢出等问题

2. 角度常量 (Angle Constants)
   - 角度归一化使用的 2π

3. 时间常量 (Time Constants)
   - 超时、时间戳等相关的特殊值

基础数学函数:
=============

本模块包含不依赖其他模块的基础数学函数（角度归一化），
这些函数被放在这里以避免循环导入问题。

使用示例:
=========

    from diffdrive_core.core.constants import (
        EPSILON, EPSILON_SMALL, NEVER_RECEIVED_TIME_MS,
        normalize_angle, angle_difference
    )

    # 角度归一化
    theta = normalize_angle(theta + delta)

    # 角度差计算
    error = angle_difference(target, current)
"""
import math


# =============================================================================
# 角度常量
# =============================================================================

TWO_PI = 2.0 * math.pi


# =============================================================================
# 基础数学函数 (不依赖其他模块，避免循环导入)
# =============================================================================

def normalize_angle(angle: float) -> float:
    """
    将角度归一化到 (-π, π] 范围

    使用 θ - 2π·round(θ/2π)。round 在 ±0.5 处的取整方向会把 -π 留在
    区间外，因此结果 <= -π 时再加 2π。

    Args:
        angle: 输入角度 (弧度)，必须是有限值

    Returns:
        归一化后的角度 (弧度)，范围 (-π, π]

    Examples:
        >>> normalize_angle(3 * math.pi)   # π
        >>> normalize_angle(-math.pi)      # π
        >>> normalize_angle(-2 * math.pi)  # 0
    """
    wrapped = angle - TWO_PI * round(angle / TWO_PI)
    if wrapped <= -math.pi:
        wrapped += TWO_PI
    elif wrapped > math.pi:
        wrapped -= TWO_PI
    return wrapped


def angle_difference(angle1: float, angle2: float) -> float:
    """
    计算两个角度之间的最短差值

    结果表示从 angle2 到 angle1 的最短旋转方向和角度。
    正值表示逆时针旋转，负值表示顺时针旋转。

    Args:
        angle1: 目标角度 (弧度)
        angle2: 起始角度 (弧度)

    Returns:
        角度差 (弧度)，范围 (-π, π]

    Examples:
        >>> angle_difference(0.1, -0.1)  # 约等于 0.2
        >>> angle_difference(-math.pi + 0.1, math.pi - 0.1)  # 约等于 0.2 (跨越 ±π)
    """
    return normalize_angle(angle1 - angle2)


# =============================================================================
# 数值稳定性常量 (Numerical Stability Constants)
# =============================================================================

# 通用小量阈值
# 用于一般的数值比较和避免除零
EPSILON = 1e-6

# 更严格的小量阈值
# 用于协方差矩阵操作、时间戳比较
EPSILON_SMALL = 1e-9

# 协方差对称性检查的绝对容差
# 浮点运算后的 P 与 P.T 差值应远小于此值
SYMMETRY_TOLERANCE = 1e-9


# =============================================================================
# 时间常量 (Time Constants)
# =============================================================================

# 表示"从未收到/从未发出"的年龄值 (毫秒)
# 使用大的有限值代替无穷大，避免 JSON 序列化问题
# 1e9 ms ≈ 11.5 天
NEVER_RECEIVED_TIME_MS = 1e9


# =============================================================================
# 导出列表
# =============================================================================

__all__ = [
    'TWO_PI',
    'EPSILON',
    'EPSILON_SMALL',
    'SYMMETRY_TOLERANCE',
    'NEVER_RECEIVED_TIME_MS',
    'normalize_angle',
    'angle_difference',
]
