"""目标跟踪控制"""
from .go_to_goal import GoToGoalController
