from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from ..config import settings

def make_context(rounds: int) -> CryptContext:
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__default_rounds=rounds,
    )

pwd = make_context(settings.BCRYPT_ROUNDS)

class PasswordHasher:
    """One-way salted bcrypt hashing; every call to ``hash`` uses a fresh salt."""

    def __init__(self, context: CryptContext = pwd):
        self.context = context

    def hash(self, plain: str) -> str: return self.context.hash(plain)
    def verify(self, plain: str, hashed: str) -> bool: return self.context.verify(plain, hashed)

def create_access_token(sub: str, role: str = "user", minutes: int | None = None) -> str:
    if minutes is None:
        minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    exp = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": sub, "role": role, "exp": exp}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Return the token claims or raise JWTError. A token without ``sub`` is rejected."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if not payload.get("sub"):
        raise JWTError("No subject")
    return payload
