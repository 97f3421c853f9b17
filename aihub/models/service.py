"""Service catalog model."""
from sqlalchemy import Column, String, DateTime, Text, Float, JSON, CheckConstraint
from sqlalchemy.sql import func

from aihub.db import Base
from aihub.models.discovery import new_id


class Service(Base):
    """A published catalog entry.

    Rows come from user registration, developers, or the discovery crawler
    (``source="auto"``). The crawler creates rows but never edits them.
    """

    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_id)
    slug = Column(String, nullable=False, unique=True, index=True)
    url = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)

    category = Column(String, nullable=False, index=True)
    tags = Column(JSON, nullable=False, default=list)
    pricing_model = Column(String, nullable=False, default="free")

    favicon_url = Column(String, nullable=True)
    og_image_url = Column(String, nullable=True)

    source = Column(String, nullable=False, default="user", index=True)
    # Source values: "user", "auto", "developer"
    score = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(
            "source IN ('user', 'auto', 'developer')",
            name='ck_service_source'
        ),
        CheckConstraint(
            "pricing_model IN ('free', 'freemium', 'paid')",
            name='ck_service_pricing_model'
        ),
    )
