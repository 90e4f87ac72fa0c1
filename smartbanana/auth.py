# Bearer token verification. Tokens are issued by the session service.
from typing import Optional

from fastapi import Header
from jose import JWTError, jwt

from smartbanana import config
from smartbanana.errors import Unauthorized


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or Expired Token")


def verify_token(authorization: str = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthorized()
    return decode_token(authorization.split(" ", 1)[1])


def optional_token(authorization: Optional[str] = Header(None)) -> Optional[dict]:
    """Same as verify_token, but anonymous callers get None instead of a 401"""
    if not authorization:
        return None
    return verify_token(authorization)
