import re

import structlog

from ...domain.entities import User
from ...domain.errors import EmailAlreadyRegistered
from ..dto import (
    ConflictError,
    InternalError,
    RegisterResult,
    RegisterUserInput,
    Success,
    ValidationError,
    ValidationReason,
)

logger = structlog.get_logger(__name__)

# x@y.z shape only, not a full RFC 5322 check
EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
MIN_PASSWORD_LENGTH = 6

class IUserRepository:
    def find_by_email(self, email: str) -> User | None: ...
    def create(self, name: str, email: str, password_hash: str) -> User: ...

class IPasswordHasher:
    def hash(self, plain: str) -> str: ...


def validate_registration(data: RegisterUserInput) -> ValidationError | None:
    """Presence, then email shape, then password length. Only the first failure is reported."""
    if not data.name or not data.email or not data.password:
        return ValidationError(ValidationReason.MISSING_FIELD)
    if not EMAIL_RE.fullmatch(data.email):
        return ValidationError(ValidationReason.INVALID_EMAIL)
    if len(data.password) < MIN_PASSWORD_LENGTH:
        return ValidationError(ValidationReason.WEAK_PASSWORD)
    return None


class RegisterUser:
    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher):
        self.repo = repo
        self.hasher = hasher

    def execute(self, data: RegisterUserInput) -> RegisterResult:
        """
        Register a new user.

        Store and hasher failures are logged here and come back as
        ``InternalError``; nothing is raised to the caller.
        """
        invalid = validate_registration(data)
        if invalid is not None:
            return invalid

        try:
            if self.repo.find_by_email(data.email) is not None:
                logger.info("registration_conflict", email=data.email)
                return ConflictError(data.email)
            pwd_hash = self.hasher.hash(data.password)
            user = self.repo.create(data.name, data.email, pwd_hash)
        except EmailAlreadyRegistered:
            # another request inserted the same email after our lookup
            logger.info("registration_conflict", email=data.email, stage="insert")
            return ConflictError(data.email)
        except Exception as e:
            logger.error("registration_failed", email=data.email, exc_info=True)
            return InternalError(type(e).__name__)

        logger.info("user_registered", user_id=user.id, email=user.email)
        return Success(user)
