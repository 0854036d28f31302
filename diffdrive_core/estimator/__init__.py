"""位姿估计"""
from .pose_ekf import PoseBeliefEKF
