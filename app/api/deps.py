# app/api/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, status, Security
from fastapi.security import OAuth2PasswordBearer, APIKeyHeader
from jose import JWTError, jwt

from app.core.config import settings
from app.schemas.token import TokenPayload

# The tokens are issued by the identity service; tokenUrl is only used by
# the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")
oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


def decode_token(token: str) -> TokenPayload:
    """Raises JWTError or ValueError when the token is invalid."""
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    return TokenPayload(**payload)


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        return decode_token(token)
    except (JWTError, ValueError):
        raise credentials_exception


def get_current_user_optional(
    token: Optional[str] = Depends(oauth2_scheme_optional),
) -> Optional[TokenPayload]:
    if token is None:
        return None
    try:
        return decode_token(token)
    except (JWTError, ValueError):
        return None


api_key_header = APIKeyHeader(name="X-Internal-Api-Key", auto_error=False)


def get_internal_api_key(api_key: str = Security(api_key_header)) -> str:
    """
    Checks for and validates the internal API key from the request header.
    """
    if api_key == settings.INTERNAL_API_KEY:
        return api_key
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing Internal API Key",
    )
