import logging

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.custody import ArchiveLocation
from app.schemas.custody import ArchiveLocationCreate
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class ArchiveLocations(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ArchiveLocationCreate) -> ArchiveLocation:
        location = ArchiveLocation(**payload.model_dump())
        try:
            db.add(location)
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(
                status_code=409, detail="Archive location code already exists"
            )
        db.refresh(location)
        logger.info("Created archive location %s (%s)", location.id, location.code)
        return location

    @staticmethod
    def get(db: Session, location_id: str) -> ArchiveLocation:
        location = db.get(ArchiveLocation, coerce_uuid(location_id))
        if not location:
            raise HTTPException(status_code=404, detail="Archive location not found")
        return location

    @staticmethod
    def location_exists(db: Session, location_id) -> bool:
        if location_id is None:
            return False
        location = db.get(ArchiveLocation, coerce_uuid(location_id))
        return bool(location and location.is_active)

    @staticmethod
    def list(
        db: Session,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[ArchiveLocation]:
        stmt = select(ArchiveLocation)
        if is_active is None:
            stmt = stmt.where(ArchiveLocation.is_active.is_(True))
        else:
            stmt = stmt.where(ArchiveLocation.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "code": ArchiveLocation.code,
                "name": ArchiveLocation.name,
                "created_at": ArchiveLocation.created_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()


archive_locations = ArchiveLocations()
