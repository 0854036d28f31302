"""
自定义异常类

本模块定义了估计/控制核心使用的自定义异常类。

异常层次结构:
=============

CoreError (基类)
├── ConfigurationError
│   └── ConfigValidationError
├── QuantityError
│   └── UnitMismatchError
├── InvalidStateError
└── CoreRuntimeError
    ├── OrderingError
    ├── BeliefDivergedError
    └── TimingFaultError

使用指南:
=========

1. 配置错误 (ConfigurationError)
   - 在组件构造或 reconfigure() 时抛出
   - 示例：v_max <= 0

2. 物理量错误 (QuantityError)
   - 构造 Quantity 时值为 NaN/Inf 或类型不对
   - 不同单位之间做加减/比较 (UnitMismatchError)
   - 调用在任何状态修改之前失败

3. 状态错误 (InvalidStateError)
   - 估计器未初始化就调用 predict/correct
   - 重复调用 initialize()（应使用 reset()）

4. 运行时错误 (CoreRuntimeError)
   - OrderingError: 时间戳倒退超过容差，调用对状态无影响
   - BeliefDivergedError: 信念已发散时请求面向控制器的估计
   - TimingFaultError: 时间间隔异常且降级策略为 fault

注意:
=====

- 缓冲区乱序、过期测量等常规拒绝通过返回枚举值报告，不抛出异常
- 核心内部从不重试，分类并报告后由集成层决定恢复策略
"""


class CoreError(Exception):
    """核心错误基类"""
    pass


# =============================================================================
# 配置错误
# =============================================================================

class ConfigurationError(CoreError):
    """配置错误基类"""
    pass


class ConfigValidationError(ConfigurationError):
    """
    配置验证错误

    当配置参数不满足验证规则时抛出。

    Attributes:
        errors: 错误列表，每个元素为 (key_path, error_message)
    """

    def __init__(self, message: str, errors: list = None):
        super().__init__(message)
        self.errors = errors or []


# =============================================================================
# 物理量错误
# =============================================================================

class QuantityError(CoreError):
    """物理量构造错误 (非有限值、非数值类型)"""
    pass


class UnitMismatchError(QuantityError):
    """不同单位的物理量之间的运算"""
    pass


# =============================================================================
# 状态错误
# =============================================================================

class InvalidStateError(CoreError):
    """组件处于不允许该调用的状态"""
    pass


# =============================================================================
# 运行时错误
# =============================================================================

class CoreRuntimeError(CoreError):
    """
    核心运行时错误基类

    注意：命名为 CoreRuntimeError 以避免与内置 RuntimeError 冲突
    """
    pass


class OrderingError(CoreRuntimeError):
    """
    时间顺序错误

    predict() 或控制器 update() 的时间戳早于当前时间戳且超出容差。
    抛出时组件状态保持不变。
    """
    pass


class BeliefDivergedError(CoreRuntimeError):
    """
    信念发散错误

    协方差超过配置上限后，面向控制器的访问器拒绝交出估计。
    需要调用者显式 reset()。
    """
    pass


class TimingFaultError(CoreRuntimeError):
    """
    时间间隔故障

    Fixed-Step Guard 拒绝了时间间隔，且降级策略配置为 fault。
    """
    pass


# =============================================================================
# 导出列表
# =============================================================================

__all__ = [
    'CoreError',
    'ConfigurationError',
    'ConfigValidationError',
    'QuantityError',
    'UnitMismatchError',
    'InvalidStateError',
    'CoreRuntimeError',
    'OrderingError',
    'BeliefDivergedError',
    'TimingFaultError',
]
