"""配置模块

提供统一的配置接口，支持：
- 默认配置 (DEFAULT_CONFIG)
- 配置验证 (validate_config)
- YAML 配置文件加载 (load_config)

使用示例:
    import copy
    from diffdrive_core.config import DEFAULT_CONFIG, validate_config

    config = copy.deepcopy(DEFAULT_CONFIG)
    config['timing']['controller_policy'] = 'zero'
    errors = validate_config(config, raise_on_error=False)
"""
from .default_config import (
    DEFAULT_CONFIG,
    CONFIG_VALIDATION_RULES,
    validate_config,
    validate_logical_consistency,
    get_config_value,
    ConfigValidationError,
    ValidationSeverity,
    SYSTEM_CONFIG,
    TIMING_CONFIG,
    BUFFER_CONFIG,
    WATCHDOG_CONFIG,
    EKF_CONFIG,
    CONTROLLER_CONFIG,
    CONSTRAINTS_CONFIG,
)
from .loader import load_config, merge_config, dump_config

__all__ = [
    'DEFAULT_CONFIG',
    'CONFIG_VALIDATION_RULES',
    'validate_config',
    'validate_logical_consistency',
    'get_config_value',
    'ConfigValidationError',
    'ValidationSeverity',
    'load_config',
    'merge_config',
    'dump_config',
    'SYSTEM_CONFIG',
    'TIMING_CONFIG',
    'BUFFER_CONFIG',
    'WATCHDOG_CONFIG',
    'EKF_CONFIG',
    'CONTROLLER_CONFIG',
    'CONSTRAINTS_CONFIG',
]
