from ats.users.models import User, UserActivity

__all__ = ["User", "UserActivity"]
