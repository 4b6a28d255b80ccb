from collections.abc import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.models.person import Person
from app.services.common import coerce_uuid
from app.services.permissions import permission_gate


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_person(
    x_person_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Person:
    """The acting person, identified upstream and passed as ``X-Person-Id``."""
    if not x_person_id:
        raise HTTPException(status_code=401, detail="X-Person-Id header is required")
    person = db.get(Person, coerce_uuid(x_person_id))
    if not person or not person.is_active:
        raise HTTPException(status_code=401, detail="Unknown or inactive person")
    return person


def require_permission(action: str):
    def dependency(person: Person = Depends(get_current_person)) -> Person:
        if not permission_gate.allows(person.role, action):
            raise HTTPException(
                status_code=403,
                detail={
                    "code": "permission_denied",
                    "message": f"Role '{person.role.value}' may not {action}",
                    "details": {"actor_id": str(person.id), "action": action},
                },
            )
        return person

    return dependency


__all__ = ["get_current_person", "get_db", "require_permission"]
