"""
SQLAlchemy ORM models for persistence.
"""
from datetime import datetime
from sqlalchemy import Column, DateTime, Integer, String

from db import Base


class PlaceImageORM(Base):
    __tablename__ = "place_images"

    storage_path = Column(String, primary_key=True, index=True)
    provider = Column(String, nullable=False)
    place_hash = Column(String, nullable=False, index=True)
    public_url = Column(String, nullable=False)
    content_type = Column(String, nullable=False, default="image/jpeg")
    size_bytes = Column(Integer, nullable=False, default=0)
    title = Column(String, nullable=True)
    trip_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
