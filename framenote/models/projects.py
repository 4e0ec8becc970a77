from __future__ import annotations

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, Text

from . import ReviewBase


class Project(ReviewBase):
    __tablename__ = "projects"

    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    owner_id = Column(Text)
    share_slug = Column(Text, nullable=False, unique=True)
    privacy = Column(Text, nullable=False, default="public")
    is_temp = Column(Integer, nullable=False, default=0)
    expires_at = Column(Text)
    created_at = Column(Text, nullable=False)

    __table_args__ = (Index("idx_projects_expires_at", "expires_at"),)


class Video(ReviewBase):
    __tablename__ = "videos"

    id = Column(Text, primary_key=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    video_url = Column(Text, nullable=False)
    provider = Column(Text, nullable=False, default="youtube")
    title = Column(Text)
    thumbnail_url = Column(Text)
    duration_seconds = Column(Float)
    source_note = Column(Text)
    created_at = Column(Text, nullable=False)

    __table_args__ = (Index("idx_videos_project_id", "project_id"),)


class GuestSession(ReviewBase):
    __tablename__ = "guest_sessions"

    id = Column(Text, primary_key=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    guest_name = Column(Text, nullable=False)
    cookie_token = Column(Text, nullable=False, unique=True)
    expires_at = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    __table_args__ = (Index("idx_guest_sessions_project_id", "project_id"),)
