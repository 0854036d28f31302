"""控制器与约束配置

包含:
- 目标跟踪 PID 控制器参数
- 运动约束 (饱和与加速度限制)
"""

# 目标跟踪控制器配置
CONTROLLER_CONFIG = {
    # 航向 PID 增益
    'gains': {
        'kp': 2.0,
        'ki': 0.1,
        'kd': 0.1,
    },
    'integral_limit': 0.5,          # 积分器限幅 (rad·s)，防止积分饱和
    'k_linear': 0.8,                # 线速度增益 (1/s)，v = k_linear · distance
    'heading_slowdown': True,       # 线速度按 max(cos(error), 0) 缩放，背向目标时原地转向
    'goal_tolerance': 0.05,         # 到达目标的位置容差 (m)
    'goal_change_tolerance': 1e-3,  # 新目标判定阈值 (m / rad)
}

# 运动约束配置
CONSTRAINTS_CONFIG = {
    'v_max': 0.5,                   # 最大线速度 (m/s)
    'omega_max': 1.5,               # 最大角速度 (rad/s)
    'a_max': 0.5,                   # 最大线加速度 (m/s²)，决定线速度斜率限制
    'alpha_max': 3.0,               # 最大角加速度 (rad/s²)，决定角速度斜率限制
}

CONTROLLER_VALIDATION_RULES = {
    'controller.gains.kp': (0.0, 100.0, '航向比例增益'),
    'controller.gains.ki': (0.0, 100.0, '航向积分增益'),
    'controller.gains.kd': (0.0, 100.0, '航向微分增益'),
    'controller.integral_limit': (0.0, 100.0, '积分器限幅'),
    'controller.k_linear': (0.0, 100.0, '线速度增益'),
    'controller.goal_tolerance': (1e-6, 10.0, '目标位置容差 (m)'),
    'controller.goal_change_tolerance': (0.0, 10.0, '新目标判定阈值'),
    # v_max/omega_max/a_max/alpha_max <= 0 由逻辑一致性检查报告为 FATAL
    'constraints.v_max': (None, 20.0, '最大线速度 (m/s)'),
    'constraints.omega_max': (None, 20.0, '最大角速度 (rad/s)'),
    'constraints.a_max': (None, 50.0, '最大线加速度 (m/s²)'),
    'constraints.alpha_max': (None, 100.0, '最大角加速度 (rad/s²)'),
}
