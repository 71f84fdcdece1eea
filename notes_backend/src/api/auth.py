from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from jose import jwt, JWTError
from passlib.context import CryptContext

from src.api.cookies import SessionCookiePolicy
from src.api.errors import Unauthorized


class PasswordHasher:
    """
    Salted one-way bcrypt hashing. The salt and cost are embedded in each digest.
    """

    def __init__(self, rounds: int):
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        self._dummy_hash = None

    def hash(self, plain_password: str) -> str:
        """Hash a plaintext password."""
        if not plain_password:
            raise ValueError("Password must not be empty")
        return self._context.hash(plain_password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a plaintext password against its hash."""
        if not plain_password or not hashed_password:
            return False
        try:
            return self._context.verify(plain_password, hashed_password)
        except ValueError:
            # stored value is not a recognizable bcrypt digest
            return False

    def verify_dummy(self, plain_password: str) -> None:
        """Do the work of one verify() when there is no stored hash to check against."""
        if self._dummy_hash is None:
            self._dummy_hash = self._context.hash("not-a-real-password")
        self._context.verify(plain_password or "x", self._dummy_hash)


@dataclass(frozen=True)
class Claims:
    user_id: str
    email: str
    expires_at: datetime


class TokenCodec:
    """
    Signs and verifies session tokens (JWT) carrying user id, email and expiry.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self._secret_key = secret_key
        self._algorithm = algorithm

    def issue(self, user_id: str, email: str, ttl: timedelta) -> str:
        """Create a signed token that expires ttl from now."""
        now = datetime.now(tz=timezone.utc)
        to_encode = {"sub": user_id, "email": email, "iat": now, "exp": now + ttl}
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> Optional[Claims]:
        """
        Decode a token.

        Returns:
            Claims, or None for any bad signature, expired or malformed token.
            The reason is not reported.
        """
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require_exp": True, "require_sub": True},
            )
        except JWTError:
            return None
        subject = payload.get("sub")
        email = payload.get("email")
        exp = payload.get("exp")
        if not isinstance(subject, str) or not subject:
            return None
        if not isinstance(email, str) or not email:
            return None
        if not isinstance(exp, (int, float)):
            return None
        return Claims(
            user_id=subject,
            email=email,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        )


def get_password_hasher(request: Request) -> PasswordHasher:
    return request.app.state.password_hasher


def get_token_codec(request: Request) -> TokenCodec:
    return request.app.state.token_codec


def get_cookie_policy(request: Request) -> SessionCookiePolicy:
    return request.app.state.cookie_policy


# PUBLIC_INTERFACE
def get_current_claims(
    request: Request,
    cookie_policy: SessionCookiePolicy = Depends(get_cookie_policy),
    codec: TokenCodec = Depends(get_token_codec),
) -> Claims:
    """
    Dependency that authenticates the caller from the session cookie.

    Only the cookie and the signing secret are consulted; no database lookup.

    Raises:
        Unauthorized if the cookie is absent or its token does not verify.
    """
    token = cookie_policy.read(request)
    if not token:
        raise Unauthorized()
    claims = codec.verify(token)
    if claims is None:
        raise Unauthorized()
    return claims
