from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import jwt
from typing import Optional
from .core_settings import Settings

CUSTOMER = "CUSTOMER"
ADMIN = "ADMIN"

@dataclass(frozen=True)
class Principal:
    id: str
    role: str = CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

def create_access_token(subject: str, settings: Settings, role: str = CUSTOMER, expires_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    minutes = expires_minutes if expires_minutes is not None else settings.JWT_EXPIRES_MINUTES
    payload = {"sub": subject, "role": role, "iat": now, "exp": now + timedelta(minutes=minutes)}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_access_token(token: str, settings: Settings) -> Optional[Principal]:
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALG],
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError:
        return None
    role = claims.get("role", CUSTOMER)
    if role not in (CUSTOMER, ADMIN):
        return None
    return Principal(id=str(claims["sub"]), role=role)
