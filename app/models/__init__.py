from app.models.user import User
from app.models.tag import Tag, post_tags
from app.models.post import Post, PostRevision, PostStatus
from app.models.setting import Setting
