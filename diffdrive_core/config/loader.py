"""YAML 配置文件加载

配置文件只需包含要覆盖的键，其余键沿用 DEFAULT_CONFIG:

    # robot.yaml
    constraints:
      v_max: 1.0
    timing:
      controller_policy: zero

使用示例:
    from diffdrive_core.config.loader import load_config
    config = load_config('robot.yaml')
"""
import copy
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..core.exceptions import ConfigurationError
from .default_config import DEFAULT_CONFIG, validate_config

logger = logging.getLogger(__name__)


def merge_config(base: Dict[str, Any], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    深度合并配置

    字典递归合并，其他值直接覆盖。不修改输入。

    Args:
        base: 基础配置
        override: 覆盖配置

    Returns:
        合并后的新字典
    """
    merged = copy.deepcopy(base)
    if not override:
        return merged
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path: Union[str, Path], validate: bool = True,
                base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    加载 YAML 配置文件并合并到默认配置

    Args:
        path: 配置文件路径
        validate: 是否验证合并后的配置
        base: 基础配置，默认为 DEFAULT_CONFIG

    Returns:
        完整配置字典

    Raises:
        ConfigurationError: 文件不存在、YAML 解析失败或顶层不是映射
        ConfigValidationError: validate=True 且配置存在阻止启动的错误
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"配置文件不存在: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            overrides = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"配置文件解析失败 {config_path}: {e}") from e

    if not isinstance(overrides, dict):
        raise ConfigurationError(
            f"配置文件顶层必须是映射，实际为 {type(overrides).__name__}: {config_path}")

    config = merge_config(DEFAULT_CONFIG if base is None else base, overrides)
    logger.info(f"已加载配置: {config_path}")

    if validate:
        validate_config(config, raise_on_error=True)
    return config


def dump_config(config: Dict[str, Any], path: Union[str, Path]) -> str:
    """
    将配置写入 YAML 文件

    Returns:
        写入的文件路径
    """
    output_path = Path(path)
    with open(output_path, 'w', encoding='utf-8') as f:
        yaml.dump(config, f, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return str(output_path)
