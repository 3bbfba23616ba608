from fastapi import HTTPException, status


def api_error(status_code: int, code: str, message: str, **extra) -> HTTPException:
    """HTTPException with detail {"error": CODE, "message": text, **extra}."""
    detail = {"error": code, "message": message}
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


def post_not_found() -> HTTPException:
    return api_error(status.HTTP_404_NOT_FOUND, "POST_NOT_FOUND", "Post not found")


def tag_not_found() -> HTTPException:
    return api_error(status.HTTP_404_NOT_FOUND, "TAG_NOT_FOUND", "Tag not found")
