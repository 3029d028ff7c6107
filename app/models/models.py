#!/usr/bin/env python
#
#
# ----------------------------------------------------------------------------
"""
ORM Models for the content store
================================

Tables
------
users               — accounts; the role decides capabilities
posts               — content items of every post type, one row each
postmeta            — free-form key/value metadata per post
terms               — taxonomy terms (categories, tags, custom taxonomies)
term_relationships  — post ↔ term membership

Post and term primary keys are integers so clients can filter by id lists.
Post dates are stored as naive UTC datetimes.
"""
# ----------------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer,
    String, Table, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


# ----------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc).replace(tzinfo=None)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# users
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class User(Base):
    __tablename__ = "users"

    id:           Mapped[int]  = mapped_column(Integer, primary_key=True, autoincrement=True)
    username:     Mapped[str]  = mapped_column(String(64),  unique=True, nullable=False, index=True)
    email:        Mapped[str]  = mapped_column(String(255), unique=True, nullable=False, index=True)
    display_name: Mapped[str]  = mapped_column(String(128), nullable=False, default="")
    role:         Mapped[str]  = mapped_column(String(32),  nullable=False, default="subscriber")
    is_active:    Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at:   Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    posts: Mapped[list["Post"]] = relationship(back_populates="author")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# term_relationships  (association)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

term_relationships = Table(
    "term_relationships",
    Base.metadata,
    Column("post_id", Integer, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True),
    Column("term_id", Integer, ForeignKey("terms.id", ondelete="CASCADE"), primary_key=True, index=True),
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# posts
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Post(Base):
    """
    One content item.  ``post_type`` names an entry in the code registry
    (post, page, attachment, …); ``parent_id`` is 0 for top-level items.
    """
    __tablename__ = "posts"
    __table_args__ = (
        Index("ix_posts_type_status_date", "post_type", "status", "date"),
    )

    id:         Mapped[int]        = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_type:  Mapped[str]        = mapped_column(String(20), nullable=False, default="post", index=True)
    status:     Mapped[str]        = mapped_column(String(20), nullable=False, default="publish")
    title:      Mapped[str]        = mapped_column(Text, nullable=False, default="")
    slug:       Mapped[str]        = mapped_column(String(200), nullable=False, default="", index=True)
    content:    Mapped[str]        = mapped_column(Text, nullable=False, default="")
    excerpt:    Mapped[str]        = mapped_column(Text, nullable=False, default="")
    author_id:  Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    parent_id:  Mapped[int]        = mapped_column(Integer, nullable=False, default=0, index=True)
    menu_order: Mapped[int]        = mapped_column(Integer, nullable=False, default=0)
    mime_type:  Mapped[str]        = mapped_column(String(100), nullable=False, default="")
    guid:       Mapped[str]        = mapped_column(String(255), nullable=False, default="")
    sticky:     Mapped[bool]       = mapped_column(Boolean, nullable=False, default=False)
    date:       Mapped[datetime]   = mapped_column(DateTime, nullable=False, default=_utcnow)
    modified:   Mapped[datetime]   = mapped_column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    # Relationships
    author: Mapped["User | None"]      = relationship(back_populates="posts")
    meta:   Mapped[list["PostMeta"]]   = relationship(back_populates="post", cascade="all, delete-orphan")
    terms:  Mapped[list["Term"]]       = relationship(secondary=term_relationships, back_populates="posts")

    def get_meta(self, key: str) -> str | None:
        """First value stored under *key*; requires ``meta`` to be loaded."""
        for row in self.meta:
            if row.meta_key == key:
                return row.meta_value
        return None

    def term_ids(self, taxonomy: str) -> list[int]:
        return sorted(t.id for t in self.terms if t.taxonomy == taxonomy)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# postmeta
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PostMeta(Base):
    __tablename__ = "postmeta"
    __table_args__ = (
        Index("ix_postmeta_post_key", "post_id", "meta_key"),
    )

    id:         Mapped[int]        = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id:    Mapped[int]        = mapped_column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    meta_key:   Mapped[str]        = mapped_column(String(255), nullable=False, index=True)
    meta_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    post: Mapped["Post"] = relationship(back_populates="meta")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# terms
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class Term(Base):
    __tablename__ = "terms"
    __table_args__ = (
        UniqueConstraint("taxonomy", "slug", name="uq_terms_taxonomy_slug"),
    )

    id:       Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    taxonomy: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    name:     Mapped[str] = mapped_column(String(200), nullable=False)
    slug:     Mapped[str] = mapped_column(String(200), nullable=False)
    parent:   Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    posts: Mapped[list["Post"]] = relationship(secondary=term_relationships, back_populates="terms")
