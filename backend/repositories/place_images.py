"""
Stored place image repository backed by SQLAlchemy/SQLite.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from domain.models import ImageProvider, StoredPlaceImage
from repositories.models import PlaceImageORM


def _image_from_orm(orm: PlaceImageORM) -> StoredPlaceImage:
    return StoredPlaceImage(
        storage_path=orm.storage_path,
        provider=ImageProvider(orm.provider),
        place_hash=orm.place_hash,
        public_url=orm.public_url,
        content_type=orm.content_type,
        size_bytes=orm.size_bytes or 0,
    )


class PlaceImagesRepository:
    """Bookkeeping for images written to media storage."""

    def get_by_path(self, session: Session, storage_path: str) -> Optional[StoredPlaceImage]:
        orm = session.get(PlaceImageORM, storage_path)
        return _image_from_orm(orm) if orm else None

    def find_by_hash(self, session: Session, place_hash: str) -> List[StoredPlaceImage]:
        rows = (
            session.query(PlaceImageORM)
            .filter(PlaceImageORM.place_hash == place_hash)
            .order_by(PlaceImageORM.updated_at.desc())
            .all()
        )
        return [_image_from_orm(r) for r in rows]

    def upsert(
        self,
        session: Session,
        image: StoredPlaceImage,
        title: Optional[str] = None,
        trip_id: Optional[str] = None,
    ) -> StoredPlaceImage:
        """Insert or overwrite the row for `image.storage_path`."""
        now = datetime.utcnow()
        orm = session.get(PlaceImageORM, image.storage_path)
        if orm is None:
            orm = PlaceImageORM(storage_path=image.storage_path, created_at=now)
        orm.provider = image.provider.value
        orm.place_hash = image.place_hash
        orm.public_url = image.public_url
        orm.content_type = image.content_type
        orm.size_bytes = image.size_bytes
        orm.title = title
        orm.trip_id = trip_id
        orm.updated_at = now
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _image_from_orm(orm)

    def count(self, session: Session) -> int:
        return session.query(func.count(PlaceImageORM.storage_path)).scalar() or 0
