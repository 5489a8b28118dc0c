from typing import Dict

from app.core.security import create_access_token
from app.models import User


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer header for the given user."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
