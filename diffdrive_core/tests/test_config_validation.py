"""配置验证与加载测试"""
import copy

import pytest
import yaml

from diffdrive_core.config.default_config import (
    DEFAULT_CONFIG,
    validate_config,
    ConfigValidationError,
    ValidationSeverity,
    get_config_value,
)
from diffdrive_core.config.loader import dump_config, load_config, merge_config
from diffdrive_core.core.exceptions import ConfigurationError
from diffdrive_core.tests.fixtures import make_config


def keys_with(errors, severity):
    return [key for key, _, s in errors if s == severity]


def test_default_config_valid():
    """测试默认配置应该通过验证"""
    errors = validate_config(DEFAULT_CONFIG, raise_on_error=False)
    assert len(errors) == 0, f"Default config has errors: {errors}"


def test_non_positive_limits_fatal():
    """测试非正的速度/加速度上限是致命错误"""
    for key in ('v_max', 'omega_max', 'a_max', 'alpha_max'):
        config = make_config({'constraints': {key: 0.0}})
        errors = validate_config(config, raise_on_error=False)
        assert f'constraints.{key}' in keys_with(errors, ValidationSeverity.FATAL)


def test_fatal_raised_first():
    """测试致命错误优先报告"""
    config = make_config({'constraints': {'v_max': -1.0}, 'timing': {'controller_policy': 'bogus'}})
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_config(config)
    keys = [key for key, _ in exc_info.value.errors]
    assert keys == ['constraints.v_max']


def test_invalid_ctrl_freq():
    """测试无效的控制频率"""
    config = make_config({'system': {'ctrl_freq': 0}})
    errors = validate_config(config, raise_on_error=False)
    assert any('ctrl_freq' in key for key, _, _ in errors)


def test_tolerance_not_below_expected_dt():
    """测试周期容差必须小于期望周期"""
    config = make_config({'timing': {'tolerance': 0.02}})
    errors = validate_config(config, raise_on_error=False)
    assert 'timing.tolerance' in keys_with(errors, ValidationSeverity.ERROR)


def test_invalid_policies():
    """测试降级策略取值"""
    config = make_config({'timing': {'controller_policy': 'skip', 'estimator_policy': 'zero'}})
    errors = validate_config(config, raise_on_error=False)
    blocking = keys_with(errors, ValidationSeverity.ERROR)
    assert 'timing.controller_policy' in blocking
    assert 'timing.estimator_policy' in blocking

    config = make_config({'timing': {'controller_policy': 'ZERO', 'estimator_policy': 'skip'}})
    assert validate_config(config, raise_on_error=False) == []


def test_buffer_capacity_integer():
    config = make_config({'buffer': {'capacity': 10.5}})
    errors = validate_config(config, raise_on_error=False)
    assert 'buffer.capacity' in keys_with(errors, ValidationSeverity.ERROR)


def test_measurement_capacity_minimum():
    """测试待处理测量队列至少容纳两个样本"""
    config = make_config({'buffer': {'measurement_capacity': 1}})
    errors = validate_config(config, raise_on_error=False)
    assert 'buffer.measurement_capacity' in keys_with(errors, ValidationSeverity.FATAL)


def test_type_error():
    """测试类型错误"""
    config = make_config({'ekf': {'process_noise': {'x': 'large'}}})
    errors = validate_config(config, raise_on_error=False)
    assert 'ekf.process_noise.x' in keys_with(errors, ValidationSeverity.ERROR)


def test_range_error_raises():
    config = make_config({'ekf': {'innovation_gate': {'probability': 1.5}}})
    with pytest.raises(ConfigValidationError):
        validate_config(config, raise_on_error=True)


def test_warnings_do_not_raise():
    """测试警告不阻止启动"""
    config = make_config({
        'watchdog': {'command_timeout_ms': 0},
        'timing': {'expected_dt': 0.05},
    })
    errors = validate_config(config, raise_on_error=True)
    warnings = keys_with(errors, ValidationSeverity.WARNING)
    assert 'watchdog.command_timeout_ms' in warnings
    assert 'timing.expected_dt' in warnings


def test_get_config_value_nested():
    assert get_config_value(DEFAULT_CONFIG, 'controller.gains.kp') == 2.0


def test_get_config_value_default():
    assert get_config_value(DEFAULT_CONFIG, 'controller.gains.missing', 42) == 42


def test_get_config_value_fallback():
    value = get_config_value({}, 'constraints.v_max', fallback_config=DEFAULT_CONFIG)
    assert value == DEFAULT_CONFIG['constraints']['v_max']


class TestLoader:
    """测试 YAML 配置加载"""

    def test_merge_does_not_mutate(self):
        base = copy.deepcopy(DEFAULT_CONFIG)
        merged = merge_config(base, {'constraints': {'v_max': 1.0}})
        assert merged['constraints']['v_max'] == 1.0
        assert merged['constraints']['omega_max'] == base['constraints']['omega_max']
        assert base['constraints']['v_max'] == DEFAULT_CONFIG['constraints']['v_max']

    def test_load_overrides(self, tmp_path):
        path = tmp_path / 'robot.yaml'
        path.write_text(yaml.safe_dump({
            'constraints': {'v_max': 1.0},
            'timing': {'controller_policy': 'zero'},
        }))
        config = load_config(path)
        assert config['constraints']['v_max'] == 1.0
        assert config['timing']['controller_policy'] == 'zero'
        assert config['ekf'] == DEFAULT_CONFIG['ekf']

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_config(path) == DEFAULT_CONFIG

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / 'missing.yaml')

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / 'bad.yaml'
        path.write_text('constraints: [v_max: 1.0\n')
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_mapping_top_level(self, tmp_path):
        path = tmp_path / 'list.yaml'
        path.write_text('- 1\n- 2\n')
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_values_rejected(self, tmp_path):
        path = tmp_path / 'invalid.yaml'
        path.write_text(yaml.safe_dump({'constraints': {'a_max': 0.0}}))
        with pytest.raises(ConfigValidationError):
            load_config(path)
        assert load_config(path, validate=False)['constraints']['a_max'] == 0.0

    def test_dump_roundtrip(self, tmp_path):
        config = make_config({'controller': {'goal_tolerance': 0.1}})
        path = dump_config(config, tmp_path / 'out.yaml')
        assert load_config(path) == config


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
