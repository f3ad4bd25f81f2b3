from app.models.activity import ActivityLog
from app.models.recommendation import Recommendation
from app.models.user import User

__all__ = [
    "ActivityLog",
    "Recommendation",
    "User",
]
