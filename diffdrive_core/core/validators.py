"""
数据验证工具

本模块提供通用的数据验证函数，用于检查输入数据的有效性。

验证函数遵循以下约定：

1. 返回布尔值表示验证是否通过
2. 不抛出异常
3. 纯函数，不修改输入，适合在控制循环中使用

示例:
    from diffdrive_core.core.validators import is_finite, is_positive_semidefinite

    if not is_finite(matrix):
        raise QuantityError("non-finite covariance")
"""
from typing import Optional, Union

import numpy as np

from .constants import SYMMETRY_TOLERANCE


# =============================================================================
# 数值验证
# =============================================================================

def is_finite(value: Union[float, np.ndarray]) -> bool:
    """
    检查值是否为有限数（非 NaN、非 Inf）

    Args:
        value: 标量或数组

    Returns:
        True 如果所有值都是有限的
    """
    return bool(np.all(np.isfinite(value)))


# =============================================================================
# 矩阵验证
# =============================================================================

def is_square(matrix: np.ndarray, size: Optional[int] = None) -> bool:
    """检查是否为方阵（可选指定维度）"""
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    return size is None or matrix.shape[0] == size


def is_symmetric(matrix: np.ndarray, tol: float = SYMMETRY_TOLERANCE) -> bool:
    """
    检查矩阵是否对称

    容差相对于矩阵最大元素缩放，大数值协方差不会因舍入误差被误判。
    """
    if not is_square(matrix):
        return False
    scale = max(1.0, float(np.max(np.abs(matrix)))) if matrix.size else 1.0
    return bool(np.allclose(matrix, matrix.T, rtol=0.0, atol=tol * scale))


def has_nonnegative_diagonal(matrix: np.ndarray) -> bool:
    """检查对角线元素是否非负"""
    return bool(np.all(np.diag(matrix) >= 0.0))


def is_positive_semidefinite(matrix: np.ndarray, tol: float = 1e-12) -> bool:
    """
    检查对称矩阵是否半正定

    Args:
        matrix: 对称方阵
        tol: 允许的最小负特征值幅度（舍入误差）
    """
    if not is_symmetric(matrix):
        return False
    try:
        eigenvalues = np.linalg.eigvalsh(matrix)
    except np.linalg.LinAlgError:
        return False
    scale = max(1.0, float(np.max(np.abs(eigenvalues)))) if eigenvalues.size else 1.0
    return bool(np.all(eigenvalues >= -tol * scale))
