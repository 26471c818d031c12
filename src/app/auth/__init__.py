from app.auth.middleware import CurrentUser, CurrentUserDep, get_current_user
from app.auth.tokens import create_access_token

__all__ = ["CurrentUser", "CurrentUserDep", "create_access_token", "get_current_user"]
