"""Identity helpers and FastAPI security dependency.

The engine does not authenticate anyone; it only needs the id of the
current user and, for instructor-only routes, their role. Both are read
from the `user_id` and `role` claims of a bearer JWT issued by the
platform's authentication service.

Token verification raises HTTPExceptions on failure so the dependency
can be used directly inside routes.
"""

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt

from .config import settings

bearer_scheme = HTTPBearer()

# roles allowed to import quizzes and read other students' results
INSTRUCTOR_ROLES = frozenset({"instructor", "admin"})


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def issue_token(user_id: str, **claims) -> str:
    """Sign a token for `user_id` (used by tests and local tooling)."""
    payload = {"user_id": str(user_id), **claims}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _user_id(payload: dict) -> str:
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    return str(user_id)


def get_current_user_id(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> str:
    """FastAPI dependency returning the id of the authenticated user."""
    return _user_id(decode_token(credentials.credentials))


def require_instructor(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> str:
    """Like `get_current_user_id`, but only for instructors and admins.

    Tokens without an instructor role are refused with 403.
    """
    payload = decode_token(credentials.credentials)
    user_id = _user_id(payload)
    if str(payload.get('role', '')).lower() not in INSTRUCTOR_ROLES:
        raise HTTPException(status_code=403, detail='instructor role required')
    return user_id
