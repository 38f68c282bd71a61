from dataclasses import dataclass
from datetime import datetime

@dataclass(frozen=True)
class User:
    """A persisted user as the application sees it. The password hash never leaves the store."""
    id: int | None
    name: str
    email: str
    role: str = "user"
    created_at: datetime | None = None
