"""
Password hashing, signed access tokens and request identity.
"""
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from errors import AuthError

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15

# User agent sent by the review scraper; it may create food trucks and post
# reviews without logging in.
TRUSTED_AGENT_USER_AGENT = os.getenv("TRUSTED_AGENT_USER_AGENT", "MunchCritic/1.0")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Who is making a request.

    user_id is set for a logged-in user. trusted_agent is set when an
    unauthenticated request comes from the scraper. Neither means anonymous.
    """
    user_id: Optional[str] = None
    trusted_agent: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def is_anonymous(self) -> bool:
        return not self.is_authenticated and not self.trusted_agent


ANONYMOUS = Identity()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": subject, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> str:
    """Verify signature and expiry and return the token subject."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.info("Rejected access token: %s", e)
        raise AuthError()
    subject = payload.get("sub")
    if not subject:
        raise AuthError()
    return subject


def resolve_identity(token: Optional[str], user_agent: Optional[str]) -> Identity:
    if token:
        try:
            return Identity(user_id=decode_access_token(token))
        except AuthError:
            # A stale or forged token is the same as no token; routes that
            # need a user reject the resulting identity themselves.
            logger.info("Treating request with an invalid token as unauthenticated")
    if user_agent == TRUSTED_AGENT_USER_AGENT:
        return Identity(trusted_agent=True)
    return ANONYMOUS


def get_identity(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> Identity:
    return resolve_identity(token, request.headers.get("user-agent"))


def require_user(identity: Identity) -> str:
    if not identity.is_authenticated:
        raise AuthError()
    return identity.user_id
