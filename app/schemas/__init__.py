
from app.schemas.common import PaginatedResponse, PostStats
from app.schemas.user import User, UserSummary, Token
from app.schemas.tag import Tag, TagCreate, TagUpdate, TagSummary
from app.schemas.post import (
    Post, PostCreate, PostUpdate, PostSummary,
    BulkPostRequest, BulkPostResponse, PreviewTokenResponse,
    PostRevision, PostRevisionSummary, PostRevisionList,
    PublishedPost, PublishedPostCard, PreviewPost, TagPage, ViewCountResponse,
    RelatedPost, ArchivePost, ArchiveMonth, ArchiveYear,
)
from app.schemas.setting import SiteSettings, SettingUpdate
