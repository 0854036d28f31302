"""
强类型物理量

每个单位是一个独立的名义类型 (nominal type)，而不是同一个数值别名:

    Seconds           时间 (s)，Timestamp 为其别名
    Meters            长度 (m)
    Radians           角度 (rad)
    MetersPerSecond   线速度 (m/s)
    RadiansPerSecond  角速度 (rad/s)

规则:
=====

1. 构造时必须给出有限的实数值；NaN/Inf、bool、其他 Quantity 均抛出 QuantityError
2. 加减和比较只允许同一类之间进行，否则抛出 UnitMismatchError
   (包括与裸 float 相加: Meters(1.0) + 1.0 是错误)
3. 与标量相乘/相除结果仍为同一类；同类相除得到无量纲 float
4. 跨单位运算只能通过具名转换完成，例如:
       MetersPerSecond.integrate(Seconds) -> Meters
       Radians.per(Seconds)               -> RadiansPerSecond
5. 实例不可变

使用示例:
    dt = t1 - t0                          # Seconds
    dx = v.integrate(dt)                  # Meters
    yaw = (yaw + omega.integrate(dt)).wrap()
"""
import math
import numbers
from typing import ClassVar, Type, TypeVar

from .constants import normalize_angle
from .exceptions import QuantityError, UnitMismatchError

Q = TypeVar('Q', bound='Quantity')


def _is_scalar(value) -> bool:
    """标量: 实数但不是 bool，也不是 Quantity"""
    return (isinstance(value, numbers.Real)
            and not isinstance(value, bool)
            and not isinstance(value, Quantity))


class Quantity:
    """带单位标签的不可变标量基类"""

    __slots__ = ('_value',)

    unit: ClassVar[str] = ''

    def __init__(self, value):
        if type(self) is Quantity:
            raise QuantityError("Quantity is abstract, use a unit class such as Meters")
        if not _is_scalar(value):
            raise QuantityError(
                f"{type(self).__name__} requires a real number, got {type(value).__name__}"
            )
        value = float(value)
        if not math.isfinite(value):
            raise QuantityError(f"{type(self).__name__} value must be finite, got {value}")
        object.__setattr__(self, '_value', value)

    @property
    def value(self) -> float:
        """数值 (以本类单位表示)"""
        return self._value

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __reduce__(self):
        return (type(self), (self._value,))

    def _check_same(self, other, op: str) -> None:
        if type(other) is not type(self):
            other_name = type(other).__name__
            raise UnitMismatchError(
                f"cannot {op} {type(self).__name__} and {other_name}; "
                f"use an explicit named conversion"
            )

    # ------------------------------------------------------------------
    # 同类加减
    # ------------------------------------------------------------------

    def __add__(self: Q, other) -> Q:
        self._check_same(other, 'add')
        return type(self)(self._value + other._value)

    def __radd__(self, other):
        self._check_same(other, 'add')
        return type(self)(other._value + self._value)

    def __sub__(self: Q, other) -> Q:
        self._check_same(other, 'subtract')
        return type(self)(self._value - other._value)

    def __rsub__(self, other):
        self._check_same(other, 'subtract')
        return type(self)(other._value - self._value)

    def __neg__(self: Q) -> Q:
        return type(self)(-self._value)

    def __pos__(self: Q) -> Q:
        return self

    def __abs__(self: Q) -> Q:
        return type(self)(abs(self._value))

    # ------------------------------------------------------------------
    # 标量乘除
    # ------------------------------------------------------------------

    def __mul__(self: Q, factor) -> Q:
        if not _is_scalar(factor):
            raise UnitMismatchError(
                f"cannot multiply {type(self).__name__} by {type(factor).__name__}; "
                f"use an explicit named conversion"
            )
        return type(self)(self._value * factor)

    __rmul__ = __mul__

    def __truediv__(self, other):
        if type(other) is type(self):
            # 同类相除 -> 无量纲比值
            return self._value / other._value
        if not _is_scalar(other):
            raise UnitMismatchError(
                f"cannot divide {type(self).__name__} by {type(other).__name__}; "
                f"use an explicit named conversion"
            )
        return type(self)(self._value / other)

    def __rtruediv__(self, other):
        raise UnitMismatchError(
            f"cannot divide {type(other).__name__} by {type(self).__name__}"
        )

    # ------------------------------------------------------------------
    # 比较
    # ------------------------------------------------------------------

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._value == other._value

    def __ne__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self._value != other._value

    def __hash__(self):
        return hash((type(self).__name__, self._value))

    def __lt__(self, other) -> bool:
        self._check_same(other, 'compare')
        return self._value < other._value

    def __le__(self, other) -> bool:
        self._check_same(other, 'compare')
        return self._value <= other._value

    def __gt__(self, other) -> bool:
        self._check_same(other, 'compare')
        return self._value > other._value

    def __ge__(self, other) -> bool:
        self._check_same(other, 'compare')
        return self._value >= other._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __str__(self) -> str:
        return f"{self._value:g} {self.unit}"

    @classmethod
    def zero(cls: Type[Q]) -> Q:
        return cls(0.0)


class Seconds(Quantity):
    """时间 (秒)，来自单调时钟"""

    __slots__ = ()
    unit = 's'

    def to_milliseconds(self) -> float:
        return self._value * 1000.0

    @classmethod
    def from_milliseconds(cls, milliseconds: float) -> 'Seconds':
        if not _is_scalar(milliseconds):
            raise QuantityError(
                f"milliseconds must be a real number, got {type(milliseconds).__name__}"
            )
        return cls(milliseconds / 1000.0)


# 时间戳与时间间隔共用 Seconds 类型
Timestamp = Seconds


def _require_interval(dt) -> float:
    if type(dt) is not Seconds:
        raise UnitMismatchError(f"interval must be Seconds, got {type(dt).__name__}")
    return dt.value


class Meters(Quantity):
    """长度 (米)"""

    __slots__ = ()
    unit = 'm'

    def per(self, dt: Seconds) -> 'MetersPerSecond':
        """位移 / 时间间隔 -> 线速度"""
        seconds = _require_interval(dt)
        if seconds == 0.0:
            raise QuantityError("cannot derive a rate over a zero interval")
        return MetersPerSecond(self._value / seconds)


class Radians(Quantity):
    """角度 (弧度)"""

    __slots__ = ()
    unit = 'rad'

    def wrap(self) -> 'Radians':
        """规范化到 (-π, π]"""
        return Radians(normalize_angle(self._value))

    def shortest_to(self, other: 'Radians') -> 'Radians':
        """从 self 转到 other 的最短有向角度，范围 (-π, π]"""
        self._check_same(other, 'compare')
        return Radians(normalize_angle(other._value - self._value))

    def per(self, dt: Seconds) -> 'RadiansPerSecond':
        """角度变化 / 时间间隔 -> 角速度"""
        seconds = _require_interval(dt)
        if seconds == 0.0:
            raise QuantityError("cannot derive a rate over a zero interval")
        return RadiansPerSecond(self._value / seconds)


class MetersPerSecond(Quantity):
    """线速度 (米/秒)"""

    __slots__ = ()
    unit = 'm/s'

    def integrate(self, dt: Seconds) -> Meters:
        """线速度 × 时间间隔 -> 位移"""
        return Meters(self._value * _require_interval(dt))


class RadiansPerSecond(Quantity):
    """角速度 (弧度/秒)"""

    __slots__ = ()
    unit = 'rad/s'

    def integrate(self, dt: Seconds) -> Radians:
        """角速度 × 时间间隔 -> 角度 (不做归一化)"""
        return Radians(self._value * _require_interval(dt))


def require_unit(value, cls: Type[Q], name: str) -> Q:
    """
    检查参数是否为指定单位类型

    Args:
        value: 待检查的值
        cls: 期望的 Quantity 子类
        name: 参数名，用于错误信息

    Returns:
        原值

    Raises:
        UnitMismatchError: 类型不匹配
    """
    if type(value) is not cls:
        raise UnitMismatchError(
            f"{name} must be {cls.__name__}, got {type(value).__name__}"
        )
    return value


__all__ = [
    'Quantity',
    'Seconds',
    'Timestamp',
    'Meters',
    'Radians',
    'MetersPerSecond',
    'RadiansPerSecond',
    'require_unit',
]
