from __future__ import annotations

from sqlalchemy import Column, Float, ForeignKey, Index, Integer, Text, UniqueConstraint

from . import ReviewBase


class Comment(ReviewBase):
    __tablename__ = "comments"

    id = Column(Text, primary_key=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    video_id = Column(Text, ForeignKey("videos.id", ondelete="CASCADE"), nullable=False)
    parent_comment_id = Column(Text, ForeignKey("comments.id"))
    author_name = Column(Text, nullable=False)
    author_id = Column(Text)
    guest_session_id = Column(Text, ForeignKey("guest_sessions.id", ondelete="SET NULL"))
    content = Column(Text, nullable=False)
    timestamp_seconds = Column(Float, nullable=False)
    is_deleted = Column(Integer, nullable=False, default=0)
    deleted_at = Column(Text)
    created_at = Column(Text, nullable=False)  # ISO-8601 UTC, microseconds

    __table_args__ = (
        Index("idx_comments_video_timestamp", "video_id", "timestamp_seconds", "created_at"),
        Index("idx_comments_parent", "parent_comment_id"),
    )


class CommentReaction(ReviewBase):
    __tablename__ = "comment_reactions"

    id = Column(Text, primary_key=True)
    comment_id = Column(Text, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False)
    reaction_type = Column(Text, nullable=False)
    user_id = Column(Text)
    guest_session_id = Column(Text, ForeignKey("guest_sessions.id", ondelete="CASCADE"))
    created_at = Column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("comment_id", "user_id", name="uq_comment_reactions_user"),
        UniqueConstraint("comment_id", "guest_session_id", name="uq_comment_reactions_guest"),
        Index("idx_comment_reactions_comment_id", "comment_id"),
    )
