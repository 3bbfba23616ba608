class BlogError(Exception):
    """Base class for domain errors raised by the blog core."""


class SlugGenerationExhausted(BlogError):
    """No free slug variant was found within the bounded retry policy."""

    def __init__(self, base_slug: str):
        self.base_slug = base_slug
        super().__init__(f"Unable to generate unique slug for base: {base_slug}")


class SlugConflict(BlogError):
    """An explicitly requested slug is already used by another post or tag."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Slug already in use: {slug}")


class InvalidPreviewTokenInput(BlogError, ValueError):
    pass


class PreviewTokenMissingSecret(BlogError, RuntimeError):
    pass
