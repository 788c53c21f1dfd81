from dataclasses import dataclass
from typing import Any
import uuid

from jose import JWTError, jwt
from starlette.requests import Request

from ats.core.config import get_settings


ANONYMOUS = "anonymous"


@dataclass
class AuthUser:
    sub: str
    roles: list[str]

    @property
    def user_uuid(self) -> uuid.UUID | None:
        """The subject as a user id, or None for anonymous and non-user subjects."""
        try:
            return uuid.UUID(self.sub)
        except ValueError:
            return None


def bearer_claims(request: Request) -> dict[str, Any] | None:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None

    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(request: Request) -> AuthUser:
    claims = bearer_claims(request)
    if claims is None:
        return AuthUser(sub=ANONYMOUS, roles=["guest"])

    subject = str(claims.get("sub", ANONYMOUS))
    roles = claims.get("roles", ["user"])
    if not isinstance(roles, list):
        roles = ["user"]
    context = getattr(request.state, "context", None)
    if context is not None:
        context.user_id = subject
    return AuthUser(sub=subject, roles=[str(role) for role in roles])
