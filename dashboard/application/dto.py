from dataclasses import dataclass
from enum import Enum

from ..domain.entities import User

@dataclass(frozen=True)
class RegisterUserInput:
    name: str | None
    email: str | None
    password: str | None


class ValidationReason(str, Enum):
    MISSING_FIELD = "missing field"
    INVALID_EMAIL = "invalid email format"
    WEAK_PASSWORD = "password too short"


@dataclass(frozen=True)
class Success:
    user: User

@dataclass(frozen=True)
class ValidationError:
    reason: ValidationReason

@dataclass(frozen=True)
class ConflictError:
    email: str

@dataclass(frozen=True)
class InternalError:
    cause: str = "internal error"


RegisterResult = Success | ValidationError | ConflictError | InternalError
