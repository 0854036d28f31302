"""配置验证模块

提供配置参数的验证功能：
- 范围检查
- 类型检查
- 逻辑一致性检查
- 错误严重级别分类

错误严重级别:
- FATAL: 致命错误，必须阻止启动（如 v_max <= 0）
- ERROR: 严重错误，默认阻止启动
- WARNING: 警告，记录但不阻止启动
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core.enums import DegradationPolicy
from ..core.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

CONTROLLER_POLICIES = (DegradationPolicy.HOLD, DegradationPolicy.ZERO, DegradationPolicy.FAULT)
ESTIMATOR_POLICIES = (DegradationPolicy.HOLD, DegradationPolicy.SKIP, DegradationPolicy.FAULT)


class ValidationSeverity(Enum):
    """验证错误严重级别"""
    FATAL = 'fatal'
    ERROR = 'error'
    WARNING = 'warning'


def get_config_value(
    config: Dict[str, Any],
    key_path: str,
    default: Any = None,
    fallback_config: Optional[Dict[str, Any]] = None
) -> Any:
    """
    从配置字典中获取值，支持点分隔的路径

    Args:
        config: 配置字典
        key_path: 点分隔的键路径，如 'ekf.process_noise.x'
        default: 默认值
        fallback_config: 备选配置字典，当 config 中找不到时从此获取

    Example:
        >>> config = {'controller': {'gains': {'kp': 2.0}}}
        >>> get_config_value(config, 'controller.gains.kp')
        2.0
    """
    keys = key_path.split('.')
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            if fallback_config is not None:
                return get_config_value(fallback_config, key_path, default, None)
            return default
    return value


def _is_numeric(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(
    config: Dict[str, Any],
    validation_rules: Dict[str, Tuple],
    raise_on_error: bool = True
) -> List[Tuple[str, str]]:
    """
    范围与类型验证

    Args:
        config: 配置字典
        validation_rules: 验证规则字典，格式为 {key_path: (min, max, description)}
        raise_on_error: 是否在发现错误时抛出异常

    Returns:
        错误列表，每个元素为 (key_path, error_message)

    Raises:
        ConfigValidationError: 当 raise_on_error=True 且发现错误时
    """
    errors = []

    for key_path, (min_val, max_val, description) in validation_rules.items():
        value = get_config_value(config, key_path)

        if value is None:
            continue  # 使用默认值或继承值，跳过验证

        if not _is_numeric(value):
            errors.append((key_path, f'{description} 类型错误，期望数值，实际为 {type(value).__name__}'))
            continue

        if value != value or value in (float('inf'), float('-inf')):
            errors.append((key_path, f'{description} 值 {value} 不是有限数'))
        elif min_val is not None and value < min_val:
            errors.append((key_path, f'{description} 值 {value} 小于最小值 {min_val}'))
        elif max_val is not None and value > max_val:
            errors.append((key_path, f'{description} 值 {value} 大于最大值 {max_val}'))

    if errors and raise_on_error:
        error_messages = '\n'.join([f'  - {key}: {msg}' for key, msg in errors])
        raise ConfigValidationError(f'配置验证失败:\n{error_messages}', errors)

    return errors


def validate_logical_consistency(config: Dict[str, Any]) -> List[Tuple[str, str, ValidationSeverity]]:
    """
    验证配置的逻辑一致性

    检查配置参数之间的逻辑关系，返回带严重级别的错误列表。

    Returns:
        错误列表，每个元素为 (key_path, error_message, severity)
    """
    errors = []

    def add_error(key: str, msg: str, severity: ValidationSeverity = ValidationSeverity.ERROR):
        errors.append((key, msg, severity))

    # ==========================================================================
    # 致命错误 (FATAL 级别)
    # ==========================================================================

    for key_path, description in (
        ('constraints.v_max', '最大线速度'),
        ('constraints.omega_max', '最大角速度'),
        ('constraints.a_max', '最大线加速度'),
        ('constraints.alpha_max', '最大角加速度'),
    ):
        value = get_config_value(config, key_path)
        if _is_numeric(value) and value <= 0:
            add_error(key_path, f'{description} ({value}) 必须大于 0', ValidationSeverity.FATAL)

    # 时间缓冲区至少需要两个样本才能插值
    for key_path, description in (
        ('buffer.capacity', '控制输入缓冲区容量'),
        ('buffer.measurement_capacity', '待处理测量队列容量'),
    ):
        value = get_config_value(config, key_path)
        if _is_numeric(value) and value < 2:
            add_error(key_path, f'{description} ({value}) 至少为 2', ValidationSeverity.FATAL)

    expected_dt = get_config_value(config, 'timing.expected_dt')
    ctrl_freq = get_config_value(config, 'system.ctrl_freq')
    if expected_dt is None and _is_numeric(ctrl_freq) and ctrl_freq > 0:
        expected_dt = 1.0 / ctrl_freq
    if _is_numeric(expected_dt) and expected_dt <= 0:
        add_error('timing.expected_dt', f'期望控制周期 ({expected_dt}) 必须大于 0',
                  ValidationSeverity.FATAL)

    # ==========================================================================
    # 严重错误 (ERROR 级别)
    # ==========================================================================

    tolerance = get_config_value(config, 'timing.tolerance')
    if _is_numeric(tolerance) and _is_numeric(expected_dt) and expected_dt > 0:
        if tolerance >= expected_dt:
            add_error('timing.tolerance',
                      f'控制周期容差 ({tolerance}) 不应大于等于期望周期 ({expected_dt})，'
                      f'否则零间隔也会被接受',
                      ValidationSeverity.ERROR)

    for key_path, allowed in (
        ('timing.controller_policy', CONTROLLER_POLICIES),
        ('timing.estimator_policy', ESTIMATOR_POLICIES),
    ):
        value = get_config_value(config, key_path)
        if value is None:
            continue
        try:
            policy = DegradationPolicy.parse(value)
        except ValueError:
            policy = None
        if policy not in allowed:
            names = ', '.join(p.value for p in allowed)
            add_error(key_path, f'降级策略 ({value!r}) 无效，可选值: {names}',
                      ValidationSeverity.ERROR)

    capacity = get_config_value(config, 'buffer.capacity')
    if _is_numeric(capacity) and not float(capacity).is_integer():
        add_error('buffer.capacity', f'缓冲区容量 ({capacity}) 必须为整数', ValidationSeverity.ERROR)

    max_age = get_config_value(config, 'buffer.measurement_max_age')
    ooo_tolerance = get_config_value(config, 'buffer.out_of_order_tolerance')
    if _is_numeric(max_age) and _is_numeric(ooo_tolerance) and max_age < ooo_tolerance:
        add_error('buffer.measurement_max_age',
                  f'测量最大等待时间 ({max_age}) 小于乱序容差 ({ooo_tolerance})，'
                  f'迟到的控制输入将无法被使用',
                  ValidationSeverity.WARNING)

    min_eigenvalue = get_config_value(config, 'ekf.covariance.min_eigenvalue')
    max_variance = get_config_value(config, 'ekf.divergence.max_variance')
    if _is_numeric(min_eigenvalue) and _is_numeric(max_variance) and min_eigenvalue >= max_variance:
        add_error('ekf.covariance.min_eigenvalue',
                  f'协方差最小特征值 ({min_eigenvalue}) 不应大于等于发散上限 ({max_variance})',
                  ValidationSeverity.ERROR)

    # ==========================================================================
    # 警告 (WARNING 级别)
    # ==========================================================================

    command_timeout = get_config_value(config, 'watchdog.command_timeout_ms')
    if _is_numeric(command_timeout) and command_timeout <= 0:
        add_error('watchdog.command_timeout_ms',
                  '命令超时检测已禁用 (值 <= 0)，命令中断时将无法检测',
                  ValidationSeverity.WARNING)

    explicit_dt = get_config_value(config, 'timing.expected_dt')
    if _is_numeric(explicit_dt) and _is_numeric(ctrl_freq) and ctrl_freq > 0:
        if abs(explicit_dt - 1.0 / ctrl_freq) > 1e-9:
            add_error('timing.expected_dt',
                      f'期望控制周期 ({explicit_dt}) 与控制频率 ({ctrl_freq} Hz) 不一致，'
                      f'建议只配置 system.ctrl_freq',
                      ValidationSeverity.WARNING)

    ki = get_config_value(config, 'controller.gains.ki')
    integral_limit = get_config_value(config, 'controller.integral_limit')
    if _is_numeric(ki) and ki > 0 and _is_numeric(integral_limit) and integral_limit == 0:
        add_error('controller.integral_limit',
                  '积分增益非零但积分限幅为 0，积分项不起作用',
                  ValidationSeverity.WARNING)

    return errors


def validate_full_config(
    config: Dict[str, Any],
    validation_rules: Dict[str, Tuple],
    raise_on_error: bool = True
) -> List[Tuple[str, str, ValidationSeverity]]:
    """
    完整配置验证（包括范围检查和逻辑一致性检查）

    Returns:
        错误列表，每个元素为 (key_path, error_message, severity)

    Raises:
        ConfigValidationError: 当 raise_on_error=True 且发现 FATAL/ERROR 级别错误时
    """
    range_errors = validate_config(config, validation_rules, raise_on_error=False)
    errors = [(key, msg, ValidationSeverity.ERROR) for key, msg in range_errors]
    errors.extend(validate_logical_consistency(config))

    fatal_errors = [(k, m, s) for k, m, s in errors if s == ValidationSeverity.FATAL]
    error_errors = [(k, m, s) for k, m, s in errors if s == ValidationSeverity.ERROR]
    warning_errors = [(k, m, s) for k, m, s in errors if s == ValidationSeverity.WARNING]

    for key, msg, _ in warning_errors:
        logger.warning(f"配置警告 [{key}]: {msg}")

    if raise_on_error:
        # 致命错误始终优先报告
        if fatal_errors:
            fatal_msgs = '\n'.join([f'  - [FATAL] {key}: {msg}' for key, msg, _ in fatal_errors])
            raise ConfigValidationError(f'配置存在致命错误，无法启动:\n{fatal_msgs}',
                                        [(k, m) for k, m, _ in fatal_errors])
        if error_errors:
            error_msgs = '\n'.join([f'  - [ERROR] {key}: {msg}' for key, msg, _ in error_errors])
            raise ConfigValidationError(f'配置验证失败:\n{error_msgs}',
                                        [(k, m) for k, m, _ in error_errors])

    return errors
