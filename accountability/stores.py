"""
Goal and user lookups consumed by the reminder service.

The reminder pipeline never writes goals or users; it only needs the two
read operations below, so any datastore can stand in for the SQLAlchemy
implementations.
"""
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from accountability.models import Goal, User


class GoalStore(Protocol):
    def find_owned_goal(self, goal_id: str, user_id: str) -> Optional[Goal]: ...


class UserStore(Protocol):
    def find_by_id(self, user_id: str) -> Optional[User]: ...


class SqlGoalStore:
    def __init__(self, db: Session):
        self.db = db

    def find_owned_goal(self, goal_id: str, user_id: str) -> Optional[Goal]:
        stmt = select(Goal).where(Goal.id == goal_id).where(Goal.user_id == user_id)
        return self.db.execute(stmt).scalars().first()


class SqlUserStore:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)
