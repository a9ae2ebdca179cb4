# devispro/dependencies.py
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from devispro.errors import AuthError
from devispro.models import User
from devispro.services.user_service import get_user_from_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def get_current_user(token: str | None = Depends(oauth2_scheme)) -> User:
    if not token:
        raise AuthError("Authentification requise")
    return get_user_from_token(token)
