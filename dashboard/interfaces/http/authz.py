from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from ...infrastructure.db import get_db
from ...infrastructure.models import UserORM
from ...infrastructure.security import decode_token

bearer = HTTPBearer()

def get_claims(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    try:
        return decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def get_current_user(claims: dict = Depends(get_claims), db: Session = Depends(get_db)) -> UserORM:
    row = db.query(UserORM).filter(UserORM.email == claims["sub"]).first()
    if not row or not row.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return row

def require_admin(user: UserORM = Depends(get_current_user)) -> UserORM:
    # role comes from the users table, not from the token claims
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin required")
    return user
