"""默认配置

本模块合并所有配置子模块，提供统一的配置接口。

配置结构:
- system_config.py: 系统、时间保护、缓冲区、看门狗配置
- ekf_config.py: EKF 配置
- controller_config.py: 控制器与运动约束配置
- validation.py: 配置验证
- loader.py: YAML 配置文件加载

使用示例:
    import copy
    from diffdrive_core.config import DEFAULT_CONFIG

    config = copy.deepcopy(DEFAULT_CONFIG)
    config['constraints']['v_max'] = 1.0
"""
import copy
from typing import Any, Dict

from .system_config import (
    SYSTEM_CONFIG,
    TIMING_CONFIG,
    BUFFER_CONFIG,
    WATCHDOG_CONFIG,
    SYSTEM_VALIDATION_RULES,
)
from .ekf_config import EKF_CONFIG, EKF_VALIDATION_RULES
from .controller_config import (
    CONTROLLER_CONFIG,
    CONSTRAINTS_CONFIG,
    CONTROLLER_VALIDATION_RULES,
)
from .validation import (
    ConfigValidationError,
    ValidationSeverity,
    get_config_value,
    validate_logical_consistency,
    validate_full_config,
)


# =============================================================================
# 合并所有配置
# =============================================================================
DEFAULT_CONFIG: Dict[str, Any] = {
    'system': copy.deepcopy(SYSTEM_CONFIG),
    'timing': copy.deepcopy(TIMING_CONFIG),
    'buffer': copy.deepcopy(BUFFER_CONFIG),
    'watchdog': copy.deepcopy(WATCHDOG_CONFIG),
    'ekf': copy.deepcopy(EKF_CONFIG),
    'controller': copy.deepcopy(CONTROLLER_CONFIG),
    'constraints': copy.deepcopy(CONSTRAINTS_CONFIG),
}


# =============================================================================
# 合并所有验证规则
# =============================================================================
CONFIG_VALIDATION_RULES: Dict[str, tuple] = {}
CONFIG_VALIDATION_RULES.update(SYSTEM_VALIDATION_RULES)
CONFIG_VALIDATION_RULES.update(EKF_VALIDATION_RULES)
CONFIG_VALIDATION_RULES.update(CONTROLLER_VALIDATION_RULES)


def validate_config(config: Dict[str, Any], raise_on_error: bool = True) -> list:
    """
    验证配置参数 (范围 + 逻辑一致性)

    Args:
        config: 配置字典
        raise_on_error: 是否在发现 FATAL/ERROR 级别错误时抛出异常

    Returns:
        错误列表，每个元素为 (key_path, error_message, severity)

    Raises:
        ConfigValidationError: 当 raise_on_error=True 且发现阻止启动的错误时

    Example:
        >>> config = copy.deepcopy(DEFAULT_CONFIG)
        >>> config['constraints']['v_max'] = -1
        >>> errors = validate_config(config, raise_on_error=False)
    """
    return validate_full_config(config, CONFIG_VALIDATION_RULES, raise_on_error)


__all__ = [
    'DEFAULT_CONFIG',
    'CONFIG_VALIDATION_RULES',
    'validate_config',
    'validate_logical_consistency',
    'get_config_value',
    'ConfigValidationError',
    'ValidationSeverity',
    'SYSTEM_CONFIG',
    'TIMING_CONFIG',
    'BUFFER_CONFIG',
    'WATCHDOG_CONFIG',
    'EKF_CONFIG',
    'CONTROLLER_CONFIG',
    'CONSTRAINTS_CONFIG',
]
