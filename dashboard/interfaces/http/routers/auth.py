import structlog
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ....application.dto import (
    ConflictError,
    InternalError,
    RegisterResult,
    RegisterUserInput,
    Success,
    ValidationError,
    ValidationReason,
)
from ....application.use_cases.register_user import RegisterUser
from ....domain.entities import User
from ....infrastructure.db import get_db
from ....infrastructure.metrics import registrations_total
from ....infrastructure.models import UserORM
from ....infrastructure.rate_limit import limiter, REGISTER_LIMIT, LOGIN_LIMIT
from ....infrastructure.repositories import UserRepository
from ....infrastructure.security import PasswordHasher, create_access_token
from ..authz import get_current_user
from ..schemas import RegisterReq, RegisterResp, MessageResp, LoginReq, UserResp, TokenResp

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

VALIDATION_MESSAGES = {
    ValidationReason.MISSING_FIELD: "Name, email, and password are required",
    ValidationReason.INVALID_EMAIL: "Invalid email format",
    ValidationReason.WEAK_PASSWORD: "Password must be at least 6 characters long",
}
CONFLICT_MESSAGE = "User with this email already exists"
INTERNAL_MESSAGE = "Internal Server Error"

def user_view(user: User | UserORM) -> UserResp:
    return UserResp(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        created_at=user.created_at,
    )

def _message(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})

def registration_response(result: RegisterResult) -> JSONResponse:
    registrations_total.labels(outcome=type(result).__name__).inc()
    if isinstance(result, Success):
        body = RegisterResp(message="User registered successfully", user=user_view(result.user))
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=body.model_dump(mode="json", by_alias=True),
        )
    if isinstance(result, ValidationError):
        return _message(status.HTTP_400_BAD_REQUEST, VALIDATION_MESSAGES[result.reason])
    if isinstance(result, ConflictError):
        return _message(status.HTTP_409_CONFLICT, CONFLICT_MESSAGE)
    return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_MESSAGE)

async def parse_registration(request: Request) -> RegisterUserInput | None:
    """Read the JSON body into a registration record, or None when the body does not conform."""
    try:
        payload = RegisterReq.model_validate(await request.json())
    except ValueError:
        # covers JSONDecodeError and pydantic's ValidationError
        logger.warning("registration_payload_rejected", exc_info=True)
        return None
    return RegisterUserInput(name=payload.name, email=payload.email, password=payload.password)

@router.post(
    "/register",
    response_model=RegisterResp,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": MessageResp}, 409: {"model": MessageResp}, 500: {"model": MessageResp}},
)
@limiter.limit(REGISTER_LIMIT)
async def register(request: Request, db: Session = Depends(get_db)):
    data = await parse_registration(request)
    if data is None:
        return registration_response(InternalError("malformed payload"))
    uc = RegisterUser(repo=UserRepository(db), hasher=PasswordHasher())
    # bcrypt and the sync session both block
    result = await run_in_threadpool(uc.execute, data)
    return registration_response(result)

@router.post("/login", response_model=TokenResp)
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, payload: LoginReq, db: Session = Depends(get_db)):
    row = db.query(UserORM).filter(UserORM.email == payload.email).first()
    if not row or not row.is_active or not PasswordHasher().verify(payload.password, row.password_hash):
        logger.info("login_failed", email=payload.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_access_token(sub=row.email, role=row.role)
    return TokenResp(access_token=token)

@router.get("/me", response_model=UserResp)
def me(user: UserORM = Depends(get_current_user)):
    return user_view(user)
