"""位姿信念 EKF

状态向量 [x, y, yaw]，单轮车 (unicycle) 运动模型。
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, cho_solve
from scipy.stats import chi2

from ..core.constants import normalize_angle
from ..core.data_types import (
    ControlInput, Covariance3, EstimatorOutput, HeadingMeasurement, Pose2,
    PoseBeliefState, PoseMeasurement, PositionMeasurement,
)
from ..core.enums import CorrectionResult, EstimatorState
from ..core.exceptions import (
    BeliefDivergedError, InvalidStateError, OrderingError, QuantityError,
)
from ..core.interfaces import IPoseEstimator
from ..core.logging_config import ThrottledLogger
from ..core.quantities import Meters, Radians, Seconds, require_unit
from ..core.validators import (
    has_nonnegative_diagonal, is_finite, is_positive_semidefinite, is_square, is_symmetric,
)

logger = logging.getLogger(__name__)

YAW_INDEX = 2


class PoseBeliefEKF(IPoseEstimator):
    """位姿信念扩展卡尔曼滤波器

    状态机: UNINITIALIZED → INITIALIZED，之后一直保持 INITIALIZED。
    reset() 用新的先验回到 INITIALIZED，而不是回到 UNINITIALIZED。

    线程安全性:
    - predict(), correct() 不是线程安全的
    - 调用者负责把并发到达的传感器数据串行化为单一的时间有序流

    典型调用顺序:
        1. initialize(prior_pose, prior_covariance, t0)
        2. predict(u, t)          - 推进到测量时间
        3. correct(measurement)   - 测量更新
        4. current_belief()       - 控制器读取信念 (发散时抛出异常)
    """

    def __init__(self, config: Dict[str, Any]):
        self._load_params(config.get('ekf', {}))

        self._status = EstimatorState.UNINITIALIZED
        self._x = np.zeros(3)
        self._P = np.zeros((3, 3))
        self._t: Optional[Seconds] = None
        self._diverged = False

        self._predict_count = 0
        self._correction_count = 0
        self._rejected_count = 0
        self.last_innovation_norm = 0.0
        self.last_mahalanobis_sq = 0.0
        self._last_result: Optional[CorrectionResult] = None

        self._throttled = ThrottledLogger(logger, min_interval=2.0)

    def _load_params(self, ekf_config: Dict[str, Any]) -> None:
        process_noise = ekf_config.get('process_noise', {})
        self.Q = np.diag([
            process_noise.get('x', 0.01),
            process_noise.get('y', 0.01),
            process_noise.get('yaw', 0.005),
        ])

        meas_noise = ekf_config.get('measurement_noise', {})
        position_var = meas_noise.get('position', 0.05)
        self.R_position = np.diag([position_var, position_var])
        self.R_heading = np.array([[meas_noise.get('heading', 0.01)]])
        pose_position_var = meas_noise.get('pose_position', 0.05)
        self.R_pose = np.diag([pose_position_var, pose_position_var,
                               meas_noise.get('pose_yaw', 0.02)])

        self.propagate_jacobian = ekf_config.get('propagate_jacobian', True)
        self.timestamp_tolerance = ekf_config.get('timestamp_tolerance', 0.001)

        covariance_config = ekf_config.get('covariance', {})
        self.min_eigenvalue = covariance_config.get('min_eigenvalue', 1e-9)
        self.initial_covariance = covariance_config.get('initial_value', 0.1)

        divergence = ekf_config.get('divergence', {})
        self.max_variance = divergence.get('max_variance', 1.0e4)
        self.max_determinant = divergence.get('max_determinant', 1.0e9)

        gate = ekf_config.get('innovation_gate', {})
        self.gate_enabled = gate.get('enabled', False)
        self.gate_probability = gate.get('probability', 0.9999)
        # 按观测维度缓存卡方门限
        self._gate_thresholds = {
            dof: float(chi2.ppf(self.gate_probability, dof)) for dof in (1, 2, 3)
        }

        anomaly = ekf_config.get('anomaly_detection', {})
        self.jump_thresh = anomaly.get('jump_thresh', 0.5)
        self.covariance_warn_thresh = anomaly.get('covariance_warn_thresh', 100.0)

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def initialize(self, prior_pose: Pose2, prior_covariance: Optional[Covariance3] = None,
                   t0: Seconds = None) -> None:
        """
        用先验初始化信念，每次运行只允许调用一次

        Args:
            prior_pose: 先验位姿
            prior_covariance: 先验协方差，None 时使用 covariance.initial_value 对角阵
            t0: 先验时间戳

        Raises:
            InvalidStateError: 已经初始化 (应使用 reset)
        """
        if self._status == EstimatorState.INITIALIZED:
            raise InvalidStateError("estimator already initialized; call reset() to start over")
        self._set_prior(prior_pose, prior_covariance, t0)
        self._status = EstimatorState.INITIALIZED
        logger.info(f"Pose belief initialized at t={self._t.value:.3f}s: "
                    f"({self._x[0]:.3f}, {self._x[1]:.3f}, {self._x[2]:.3f})")

    def reset(self, prior_pose: Pose2, prior_covariance: Optional[Covariance3] = None,
              t0: Seconds = None) -> None:
        """
        用新的先验重置信念，清除发散标志和统计

        Raises:
            InvalidStateError: 尚未初始化
        """
        if self._status != EstimatorState.INITIALIZED:
            raise InvalidStateError("estimator not initialized; call initialize() first")
        # 先清除旧标志，新先验本身超限时仍会被标记发散
        self._diverged = False
        self._set_prior(prior_pose, prior_covariance, t0)
        self._predict_count = 0
        self._correction_count = 0
        self._rejected_count = 0
        self.last_innovation_norm = 0.0
        self.last_mahalanobis_sq = 0.0
        self._last_result = None
        logger.info(f"Pose belief reset at t={self._t.value:.3f}s")

    def reconfigure(self, config: Dict[str, Any], prior_pose: Pose2,
                    prior_covariance: Optional[Covariance3] = None,
                    t0: Seconds = None) -> None:
        """重新读取参数并以新的先验重新开始，等同于重新初始化"""
        self._load_params(config.get('ekf', {}))
        if self._status == EstimatorState.INITIALIZED:
            self.reset(prior_pose, prior_covariance, t0)
        else:
            self.initialize(prior_pose, prior_covariance, t0)

    def _set_prior(self, prior_pose: Pose2, prior_covariance: Optional[Covariance3],
                   t0: Seconds) -> None:
        if not isinstance(prior_pose, Pose2):
            raise QuantityError(f"prior_pose must be Pose2, got {type(prior_pose).__name__}")
        if prior_covariance is None:
            prior_covariance = Covariance3.from_diagonal(*([self.initial_covariance] * 3))
        elif not isinstance(prior_covariance, Covariance3):
            raise QuantityError(
                f"prior_covariance must be Covariance3, got {type(prior_covariance).__name__}")
        require_unit(t0, Seconds, 't0')

        self._x = prior_pose.as_array()
        self._P = prior_covariance.matrix
        self._t = t0
        self._check_divergence()

    def _require_initialized(self) -> None:
        if self._status != EstimatorState.INITIALIZED:
            raise InvalidStateError("estimator not initialized")

    # ------------------------------------------------------------------
    # 预测
    # ------------------------------------------------------------------

    def predict(self, u: ControlInput, t: Seconds) -> None:
        """
        运动预测

        x' = x + v·cos(θ)·dt
        y' = y + v·sin(θ)·dt
        θ' = wrap(θ + ω·dt)
        P' = F P Fᵀ + Q·dt

        Jacobian F 在预测前的状态上计算。

        Args:
            u: 控制输入 (dt 区间内视为常量)
            t: 目标时间戳

        Raises:
            InvalidStateError: 尚未初始化
            OrderingError: t 早于信念时间且超出容差，信念保持不变
        """
        self._require_initialized()
        if not isinstance(u, ControlInput):
            raise QuantityError(f"u must be ControlInput, got {type(u).__name__}")
        require_unit(t, Seconds, 't')

        dt = t - self._t
        if dt.value < -self.timestamp_tolerance:
            raise OrderingError(
                f"predict time {t.value:.6f}s is {-dt.value:.6f}s before belief time "
                f"{self._t.value:.6f}s (tolerance {self.timestamp_tolerance}s)")
        if dt.value <= 0.0:
            return

        theta = self._x[YAW_INDEX]
        v = u.linear.value
        cos_theta = np.cos(theta)
        sin_theta = np.sin(theta)

        # 1. 先在预测前的状态上计算 Jacobian
        F = self._compute_jacobian(dt.value, theta, v)

        # 2. 更新状态
        distance = u.linear.integrate(dt).value
        heading = Radians(theta) + u.angular.integrate(dt)
        self._x = np.array([
            self._x[0] + distance * cos_theta,
            self._x[1] + distance * sin_theta,
            heading.wrap().value,
        ])

        # 3. 更新协方差
        if self.propagate_jacobian:
            self._P = F @ self._P @ F.T + self.Q * dt.value
        else:
            self._P = self._P + self.Q * dt.value
        self._ensure_positive_semidefinite()

        self._t = t
        self._predict_count += 1
        self._check_divergence()
        logger.debug(f"predict dt={dt.value:.4f}s -> ({self._x[0]:.3f}, "
                     f"{self._x[1]:.3f}, {self._x[2]:.3f})")

    def _compute_jacobian(self, dt: float, theta: float, v: float) -> np.ndarray:
        """
        运动模型对状态的 Jacobian

        ∂x'/∂θ = -v·sin(θ)·dt
        ∂y'/∂θ =  v·cos(θ)·dt
        """
        F = np.eye(3)
        F[0, YAW_INDEX] = -v * np.sin(theta) * dt
        F[1, YAW_INDEX] = v * np.cos(theta) * dt
        return F

    # ------------------------------------------------------------------
    # 校正
    # ------------------------------------------------------------------

    def correct(self, measurement, R=None) -> CorrectionResult:
        """
        测量更新

        调用前信念必须已经 predict 到测量时间 (容差内)。

        Args:
            measurement: PositionMeasurement / HeadingMeasurement / PoseMeasurement
            R: 测量噪声协方差，None 时使用配置值

        Returns:
            CorrectionResult；被拒绝的测量不修改信念

        Raises:
            InvalidStateError: 尚未初始化
            QuantityError: 测量类型未知或 R 无效
        """
        self._require_initialized()
        z, H, R_default, angle_indices = self._observation_model(measurement)
        R = R_default if R is None else self._validate_noise(R, len(z))

        offset = measurement.timestamp - self._t
        if offset.value < -self.timestamp_tolerance:
            return self._reject(
                CorrectionResult.REJECTED_STALE,
                f"stale measurement rejected: {-offset.value:.4f}s before belief time "
                f"{self._t.value:.4f}s")
        if offset.value > self.timestamp_tolerance:
            return self._reject(
                CorrectionResult.REJECTED_NOT_ALIGNED,
                f"measurement {offset.value:.4f}s ahead of belief; predict first")

        y = z - H @ self._x
        for idx in angle_indices:
            y[idx] = normalize_angle(y[idx])

        S = H @ self._P @ H.T + R
        S = (S + S.T) / 2
        try:
            factor = cho_factor(S)
            S_inv_y = cho_solve(factor, y)
            # K = P Hᵀ S⁻¹ = (S⁻¹ H P)ᵀ
            K = cho_solve(factor, H @ self._P).T
        except (LinAlgError, ValueError):
            S_inv = np.linalg.pinv(S)
            S_inv_y = S_inv @ y
            K = self._P @ H.T @ S_inv

        mahalanobis_sq = float(y @ S_inv_y)
        if self.gate_enabled and mahalanobis_sq > self._gate_thresholds[len(z)]:
            self.last_mahalanobis_sq = mahalanobis_sq
            return self._reject(
                CorrectionResult.REJECTED_OUTLIER,
                f"outlier measurement rejected: mahalanobis²={mahalanobis_sq:.2f} > "
                f"{self._gate_thresholds[len(z)]:.2f}")

        self._x = self._x + K @ y
        self._x[YAW_INDEX] = normalize_angle(self._x[YAW_INDEX])

        # Joseph 形式
        I_KH = np.eye(3) - K @ H
        self._P = I_KH @ self._P @ I_KH.T + K @ R @ K.T
        self._ensure_positive_semidefinite()

        self.last_innovation_norm = float(np.linalg.norm(y))
        self.last_mahalanobis_sq = mahalanobis_sq
        self._correction_count += 1
        self._last_result = CorrectionResult.APPLIED
        self._check_divergence()
        logger.debug(f"correct {type(measurement).__name__}: |y|={self.last_innovation_norm:.4f}, "
                     f"d²={mahalanobis_sq:.3f}")
        return CorrectionResult.APPLIED

    def _observation_model(self, measurement) -> Tuple[np.ndarray, np.ndarray, np.ndarray, List[int]]:
        """
        观测模型 (z, H, R, 角度分量索引)

        所有测量都是状态的线性选择，h(x) = H x。
        """
        if isinstance(measurement, PositionMeasurement):
            z = np.array([measurement.x.value, measurement.y.value])
            H = np.array([[1.0, 0.0, 0.0],
                          [0.0, 1.0, 0.0]])
            return z, H, self.R_position, []
        if isinstance(measurement, HeadingMeasurement):
            z = np.array([measurement.yaw.value])
            H = np.array([[0.0, 0.0, 1.0]])
            return z, H, self.R_heading, [0]
        if isinstance(measurement, PoseMeasurement):
            return measurement.pose.as_array(), np.eye(3), self.R_pose, [YAW_INDEX]
        raise QuantityError(f"unsupported measurement type: {type(measurement).__name__}")

    @staticmethod
    def _validate_noise(R, size: int) -> np.ndarray:
        if isinstance(R, Covariance3):
            R = R.matrix
        try:
            R = np.array(R, dtype=float)
        except (TypeError, ValueError) as e:
            raise QuantityError(f"measurement noise must be a numeric matrix: {e}") from e
        if R.ndim == 0 and size == 1:
            R = R.reshape(1, 1)
        if not is_square(R, size):
            raise QuantityError(f"measurement noise must be {size}x{size}, got shape {R.shape}")
        if not is_finite(R) or not is_symmetric(R) or not has_nonnegative_diagonal(R):
            raise QuantityError("measurement noise must be finite, symmetric, non-negative diagonal")
        if not is_positive_semidefinite(R):
            raise QuantityError("measurement noise must be positive semi-definite")
        return R

    def _reject(self, result: CorrectionResult, message: str) -> CorrectionResult:
        self._rejected_count += 1
        self._last_result = result
        self._throttled.warning(message, key=result.name)
        return result

    # ------------------------------------------------------------------
    # 协方差保护与发散检测
    # ------------------------------------------------------------------

    def _ensure_positive_semidefinite(self) -> None:
        """对称化并把特征值钳制到 min_eigenvalue 以上"""
        self._P = (self._P + self._P.T) / 2
        try:
            eigenvalues, eigenvectors = np.linalg.eigh(self._P)
            if np.any(eigenvalues < self.min_eigenvalue):
                eigenvalues = np.maximum(eigenvalues, self.min_eigenvalue)
                self._P = eigenvectors @ np.diag(eigenvalues) @ eigenvectors.T
                self._P = (self._P + self._P.T) / 2
        except np.linalg.LinAlgError:
            self._P = np.eye(3) * self.initial_covariance
            logger.warning("Covariance eigendecomposition failed, reset to initial value")

    def _check_divergence(self) -> None:
        if self._diverged:
            return
        finite = is_finite(self._P)
        max_var = float(np.max(np.diag(self._P))) if finite else float('inf')
        det = float(np.linalg.det(self._P)) if finite else float('inf')
        if max_var > self.max_variance or det > self.max_determinant:
            self._diverged = True
            logger.error(f"Pose belief diverged: max variance={max_var:.3g} "
                         f"(limit {self.max_variance:.3g}), det={det:.3g} "
                         f"(limit {self.max_determinant:.3g}); reset required")

    # ------------------------------------------------------------------
    # 只读访问
    # ------------------------------------------------------------------

    def _snapshot(self) -> PoseBeliefState:
        return PoseBeliefState(
            mean=Pose2(Meters(float(self._x[0])), Meters(float(self._x[1])),
                       Radians(float(self._x[2]))),
            covariance=Covariance3(self._P),
            timestamp=self._t,
        )

    def current_belief(self) -> PoseBeliefState:
        """
        面向控制器的信念访问器

        Raises:
            InvalidStateError: 尚未初始化
            BeliefDivergedError: 信念已发散，需要 reset
        """
        self._require_initialized()
        if self._diverged:
            raise BeliefDivergedError(
                "pose belief diverged; refusing to hand out estimate until reset()")
        return self._snapshot()

    def detect_anomalies(self) -> List[str]:
        """
        检测估计器异常

        - BELIEF_DIVERGED: 协方差超过发散上限
        - COVARIANCE_HIGH: 协方差迹超过告警阈值
        - INNOVATION_JUMP: 最近一次创新量超过跳变阈值
        - OUTLIER_REJECTED: 最近一次测量被门限拒绝
        """
        anomalies = []
        if self._diverged:
            anomalies.append("BELIEF_DIVERGED")
        if self._status == EstimatorState.INITIALIZED and np.trace(self._P) > self.covariance_warn_thresh:
            anomalies.append("COVARIANCE_HIGH")
        if self.last_innovation_norm > self.jump_thresh:
            anomalies.append("INNOVATION_JUMP")
        if self._last_result == CorrectionResult.REJECTED_OUTLIER:
            anomalies.append("OUTLIER_REJECTED")
        return anomalies

    def get_state(self) -> EstimatorOutput:
        """可观测性输出，发散时也返回快照"""
        initialized = self._status == EstimatorState.INITIALIZED
        return EstimatorOutput(
            state=self._snapshot() if initialized else None,
            estimator_state=self._status,
            diverged=self._diverged,
            covariance_norm=float(np.linalg.norm(self._P)),
            innovation_norm=self.last_innovation_norm,
            mahalanobis_sq=self.last_mahalanobis_sq,
            predict_count=self._predict_count,
            correction_count=self._correction_count,
            rejected_count=self._rejected_count,
            anomalies=self.detect_anomalies(),
        )

    @property
    def status(self) -> EstimatorState:
        return self._status

    @property
    def is_initialized(self) -> bool:
        return self._status == EstimatorState.INITIALIZED

    @property
    def diverged(self) -> bool:
        return self._diverged

    @property
    def timestamp(self) -> Optional[Seconds]:
        return self._t
