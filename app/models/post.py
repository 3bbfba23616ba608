import enum
from sqlalchemy import Column, String, Boolean, DateTime, func, Text, Integer, ForeignKey
from sqlalchemy.orm import relationship
from app.db.session import Base
from app.models.tag import post_tags


class PostStatus(str, enum.Enum):
    draft = "draft"
    published = "published"
    archived = "archived"


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(191), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    summary = Column(Text, nullable=True)
    content_md = Column(Text, nullable=True)
    content_html = Column(Text, nullable=True)
    cover_image_url = Column(String(512), nullable=True)
    status = Column(String(20), nullable=False, default=PostStatus.draft.value, index=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    allow_comments = Column(Boolean, nullable=False, default=True)
    view_count = Column(Integer, nullable=False, default=0)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    published_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    author = relationship("User")
    tags = relationship("Tag", secondary=post_tags, back_populates="posts", order_by="Tag.name")
    revisions = relationship(
        "PostRevision",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="PostRevision.revision_number.desc()",
    )


class PostRevision(Base):
    __tablename__ = "post_revisions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    revision_number = Column(Integer, nullable=False)
    # Snapshot of the editable post fields at the time of the revision
    title = Column(String(255), nullable=True)
    slug = Column(String(191), nullable=True)
    summary = Column(Text, nullable=True)
    content_md = Column(Text, nullable=True)
    content_html = Column(Text, nullable=True)
    cover_image_url = Column(String(512), nullable=True)
    status = Column(String(20), nullable=True)
    is_featured = Column(Boolean, nullable=True)
    allow_comments = Column(Boolean, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    editor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    diff_summary = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    post = relationship("Post", back_populates="revisions")
    editor = relationship("User")
