"""EKF 配置

位姿信念 (x, y, yaw) 扩展卡尔曼滤波器的配置参数：
- 过程噪声
- 各传感器的测量噪声
- 时间戳容差
- 协方差保护与发散检测
- 创新量门限
"""

EKF_CONFIG = {
    # 过程噪声 (方差增长率，单位: 方差/秒)
    # 预测时 P = F P Fᵀ + Q·dt
    'process_noise': {
        'x': 0.01,                          # m²/s
        'y': 0.01,                          # m²/s
        'yaw': 0.005,                       # rad²/s
    },

    # 测量噪声 (方差)，correct() 未显式给出 R 时使用
    'measurement_noise': {
        'position': 0.05,                   # 位置测量 x/y (m²)
        'heading': 0.01,                    # 航向测量 (rad²)
        'pose_position': 0.05,              # 完整位姿测量 x/y 部分 (m²)
        'pose_yaw': 0.02,                   # 完整位姿测量 yaw 部分 (rad²)
    },

    # 是否通过运动 Jacobian 传播协方差；False 时只累加 Q·dt
    'propagate_jacobian': True,

    # predict/correct 时间戳容差 (秒)
    # 早于信念时间但在容差内: predict 为空操作，correct 视为对齐
    'timestamp_tolerance': 0.001,

    # 协方差保护
    'covariance': {
        'min_eigenvalue': 1e-9,             # 特征值下限 (保证半正定)
        'initial_value': 0.1,               # 默认先验对角线值
    },

    # 发散检测: 任一对角线或行列式超过上限即标记发散
    'divergence': {
        'max_variance': 1.0e4,
        'max_determinant': 1.0e9,
    },

    # 卡方创新量门限 (可选，默认关闭)
    'innovation_gate': {
        'enabled': False,
        'probability': 0.9999,              # chi2.ppf 的置信水平
    },

    # 异常检测参数 (仅用于可观测性，不改变滤波行为)
    'anomaly_detection': {
        'jump_thresh': 0.5,                 # 位置创新量跳变阈值 (m)
        'covariance_warn_thresh': 100.0,    # 协方差迹告警阈值
    },
}

# EKF 配置验证规则
EKF_VALIDATION_RULES = {
    'ekf.process_noise.x': (0.0, 10.0, 'x 过程噪声 (m²/s)'),
    'ekf.process_noise.y': (0.0, 10.0, 'y 过程噪声 (m²/s)'),
    'ekf.process_noise.yaw': (0.0, 10.0, 'yaw 过程噪声 (rad²/s)'),
    'ekf.measurement_noise.position': (1e-9, 100.0, '位置测量噪声 (m²)'),
    'ekf.measurement_noise.heading': (1e-9, 10.0, '航向测量噪声 (rad²)'),
    'ekf.measurement_noise.pose_position': (1e-9, 100.0, '位姿测量位置噪声 (m²)'),
    'ekf.measurement_noise.pose_yaw': (1e-9, 10.0, '位姿测量航向噪声 (rad²)'),
    'ekf.timestamp_tolerance': (0.0, 1.0, '时间戳容差 (秒)'),
    'ekf.covariance.min_eigenvalue': (0.0, 1.0, '协方差最小特征值'),
    'ekf.covariance.initial_value': (0.0, 100.0, '默认先验协方差'),
    'ekf.divergence.max_variance': (1e-6, 1e12, '发散方差上限'),
    'ekf.divergence.max_determinant': (1e-12, 1e36, '发散行列式上限'),
    'ekf.innovation_gate.probability': (0.5, 0.999999, '创新量门限置信水平'),
    'ekf.anomaly_detection.jump_thresh': (0.001, 100.0, '位置跳变阈值 (m)'),
    'ekf.anomaly_detection.covariance_warn_thresh': (1e-6, 1e12, '协方差迹告警阈值'),
}
