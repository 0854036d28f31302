"""时间缓冲区"""
from .time_buffer import (
    TimeBuffer, linear_lerp, angle_lerp, control_input_lerp, pose_lerp,
)
