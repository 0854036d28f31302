"""系统基础配置

包含:
- 控制频率
- 固定步长时间保护与降级策略
- 时间缓冲区
- 命令看门狗
"""

# 系统配置
SYSTEM_CONFIG = {
    'ctrl_freq': 50,                # 控制频率 (Hz)，timing.expected_dt 未配置时由此推导
}

# 时间间隔保护配置
# 注意:
# - expected_dt 为 None 时继承 1 / system.ctrl_freq
# - controller_policy: hold / zero / fault
# - estimator_policy: skip / fault / hold (hold 表示照常推进信念并记录异常)
TIMING_CONFIG = {
    'expected_dt': None,            # 期望控制周期 (秒)
    'tolerance': 0.005,             # 允许偏差 (秒)
    'controller_policy': 'hold',
    'estimator_policy': 'hold',
}

# 时间缓冲区配置
BUFFER_CONFIG = {
    'capacity': 200,                   # 控制输入缓冲区容量
    'out_of_order_tolerance': 0.05,    # 乱序容差 (秒)
    'measurement_capacity': 50,        # 待处理测量队列容量
    'measurement_max_age': 0.5,        # 待处理测量最大等待时间 (秒)
}

# 命令看门狗配置
# 注意: command_timeout_ms <= 0 表示禁用
WATCHDOG_CONFIG = {
    'command_timeout_ms': 200,      # 命令超时 (ms)
    'startup_grace_ms': 1000,       # 启动宽限期 (ms)，期间不报告超时
}

SYSTEM_VALIDATION_RULES = {
    'system.ctrl_freq': (1, 1000, '控制频率 (Hz)'),
    'timing.expected_dt': (1e-4, 10.0, '期望控制周期 (秒)'),
    'timing.tolerance': (0.0, 10.0, '控制周期容差 (秒)'),
    'buffer.capacity': (2, 100000, '控制输入缓冲区容量'),
    'buffer.out_of_order_tolerance': (0.0, 10.0, '乱序容差 (秒)'),
    'buffer.measurement_capacity': (2, 100000, '待处理测量队列容量'),
    'buffer.measurement_max_age': (0.0, 60.0, '待处理测量最大等待时间 (秒)'),
    'watchdog.command_timeout_ms': (None, 60000, '命令超时 (ms)，<=0 禁用'),
    'watchdog.startup_grace_ms': (0, 600000, '启动宽限期 (ms)'),
}
