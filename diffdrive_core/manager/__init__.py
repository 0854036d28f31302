"""控制循环"""
from .control_loop import ControlLoop
