from functools import wraps
from typing import Dict, Optional

from flask import g
from flask_jwt_extended import (
    create_access_token,
    decode_token,
    get_jwt,
    verify_jwt_in_request,
)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import PyJWTError

from shop_backend.errors import InvalidToken

TOKEN_HEADER_NAME = "auth-token"


def issue_token(user_id) -> str:
    """Sign ``{"user": {"id": user_id}}`` with the app secret. Tokens never expire."""
    subject = str(user_id)
    return create_access_token(
        identity=subject,
        additional_claims={"user": {"id": subject}},
        expires_delta=False,
    )


def user_id_from_claims(claims: Optional[Dict]) -> str:
    user = (claims or {}).get("user")
    user_id = user.get("id") if isinstance(user, dict) else None
    if not isinstance(user_id, str) or not user_id:
        raise InvalidToken()
    return user_id


def verify_token(token: str) -> str:
    try:
        claims = decode_token(token, allow_expired=True)
    except (PyJWTError, JWTExtendedException) as exc:
        raise InvalidToken() from exc
    return user_id_from_claims(claims)


def fetch_user(view):
    """Require a valid ``auth-token`` header and expose the caller as ``g.user_id``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        g.user_id = user_id_from_claims(get_jwt())
        return view(*args, **kwargs)

    return wrapper


def configure_jwt(jwt_manager):
    def reject(reason: str):
        return InvalidToken().to_dict(), InvalidToken.status_code

    jwt_manager.unauthorized_loader(reject)
    jwt_manager.invalid_token_loader(reject)
