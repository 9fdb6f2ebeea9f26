"""Auth domain types."""

from pydantic import BaseModel

from taskcred.core.domain_types import Role


class TokenPayload(BaseModel):
    """Session token claims."""

    sub: str  # account id
    role: Role
    iat: int  # issued at timestamp
    jti: str  # makes every issued token unique
