from .user import User
from .goal import Goal

__all__ = ["User", "Goal"]
