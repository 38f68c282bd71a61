from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from .models import UserORM
from ..domain.entities import User
from ..domain.errors import EmailAlreadyRegistered
from ..application.use_cases.register_user import IUserRepository

def to_domain(u: UserORM) -> User:
    return User(id=u.id, name=u.name, email=u.email, role=u.role, created_at=u.created_at)

class UserRepository(IUserRepository):
    def __init__(self, db: Session): self.db = db

    def find_by_email(self, email: str) -> User | None:
        row = self.db.query(UserORM).filter(UserORM.email == email).first()
        return to_domain(row) if row else None

    def create(self, name: str, email: str, password_hash: str) -> User:
        row = UserORM(name=name, email=email, password_hash=password_hash)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise EmailAlreadyRegistered(email) from e
        self.db.refresh(row)
        return to_domain(row)
