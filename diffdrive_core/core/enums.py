"""枚举定义"""
from enum import Enum, IntEnum


class EstimatorState(IntEnum):
    """位姿估计器状态"""
    UNINITIALIZED = 0
    INITIALIZED = 1


class ControllerMode(IntEnum):
    """控制器模式"""
    IDLE = 0       # 无目标
    TRACKING = 1   # 正在跟踪目标


class PushResult(IntEnum):
    """时间缓冲区插入结果"""
    APPENDED = 0
    REORDERED = 1               # 容差内的乱序样本，已插入正确位置
    REJECTED_OUT_OF_ORDER = 2   # 早于最新样本超过容差
    REJECTED_DUPLICATE = 3      # 时间戳已存在

    @property
    def accepted(self) -> bool:
        return self in (PushResult.APPENDED, PushResult.REORDERED)


class CorrectionResult(IntEnum):
    """测量更新结果"""
    APPLIED = 0
    REJECTED_STALE = 1         # 测量时间早于信念时间且超出容差
    REJECTED_NOT_ALIGNED = 2   # 测量时间晚于信念时间，需要先 predict
    REJECTED_OUTLIER = 3       # 创新量未通过卡方门限

    @property
    def applied(self) -> bool:
        return self == CorrectionResult.APPLIED


class TimingVerdict(IntEnum):
    """时间间隔分类"""
    NOMINAL = 0
    TOO_SHORT = 1
    TOO_LONG = 2


class DegradationPolicy(str, Enum):
    """时间间隔异常时的降级策略"""
    HOLD = 'hold'      # 保持上一次安全命令
    ZERO = 'zero'      # 平滑减速到零
    SKIP = 'skip'      # 跳过本次更新
    FAULT = 'fault'    # 抛出 TimingFaultError

    @classmethod
    def parse(cls, value) -> 'DegradationPolicy':
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())
