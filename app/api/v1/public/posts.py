from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.errors import api_error, post_not_found
from app.db.session import get_db
from app.models.post import Post
from app.schemas.post import ViewCountResponse
from app.utils.posts import published_condition

router = APIRouter(prefix="/posts", tags=["Posts"])


@router.post("/{id}/view", response_model=ViewCountResponse)
def record_view(id: int, db: Session = Depends(get_db)):
    """Increment the view counter of a published post."""
    if id <= 0:
        raise api_error(status.HTTP_400_BAD_REQUEST, "INVALID_IDENTIFIER", "Post id is invalid")

    updated = (
        db.query(Post)
        .filter(Post.id == id, published_condition())
        .update({Post.view_count: Post.view_count + 1}, synchronize_session=False)
    )
    db.commit()
    if not updated:
        raise post_not_found()

    view_count = db.query(Post.view_count).filter(Post.id == id).scalar()
    return ViewCountResponse(id=id, view_count=view_count)
