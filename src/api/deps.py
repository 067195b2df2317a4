"""Request-scoped dependencies: database session, principal, collaborators."""

import os
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from src.api.errors import to_http_exception
from src.application.booking_service import BookingService
from src.application.completion_gate import CompletionEvidenceGate
from src.domain.actors import ActorRole, Principal
from src.domain.exceptions import UnauthorizedError
from src.infrastructure.db.session import SessionLocal
from src.infrastructure.storage.file_storage import FileStorage, build_file_storage

JWT_SECRET = os.getenv("AUTH_JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = os.getenv("AUTH_JWT_ALGORITHM", "HS256")

bearer_scheme = HTTPBearer(auto_error=False)

_file_storage: FileStorage | None = None


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_access_token(
    principal_id: int,
    email: str,
    role: ActorRole,
    expires_delta: timedelta = timedelta(days=30),
) -> str:
    """Issue a token in the identity provider's format (scripts and tests)."""
    payload: dict[str, Any] = {
        "sub": str(principal_id),
        "email": email,
        "role": role.value,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_principal(token: str) -> Principal:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        raise UnauthorizedError("Invalid or expired token") from exc

    try:
        return Principal(
            id=int(payload["sub"]),
            email=str(payload.get("email", "")),
            role=ActorRole(payload["role"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise UnauthorizedError("Invalid token payload") from exc


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    try:
        if credentials is None:
            raise UnauthorizedError("Unauthorized")
        return decode_principal(credentials.credentials)
    except UnauthorizedError as exc:
        raise to_http_exception(exc) from exc


def get_file_storage() -> FileStorage:
    global _file_storage
    if _file_storage is None:
        _file_storage = build_file_storage()
    return _file_storage


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    return BookingService(db)


def get_completion_gate(
    booking_service: BookingService = Depends(get_booking_service),
    storage: FileStorage = Depends(get_file_storage),
) -> CompletionEvidenceGate:
    return CompletionEvidenceGate(booking_service, storage)
