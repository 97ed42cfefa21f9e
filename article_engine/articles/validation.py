"""
Article validation.

Rules are checked in a fixed order and the first violation wins. Lengths are
measured after trimming surrounding whitespace. Validators never raise: they
return a ``ValidationResult`` carrying either the validated payload or the
error.
"""

from typing import Any, Dict, Optional

from ..errors import ErrorCode, ValidationError
from .enums import ArticleStatus
from .schemas import (
    EDITABLE_FIELDS,
    NON_NULLABLE_FIELDS,
    ArticleInput,
    ArticleUpdate,
    ValidatedArticle,
    ValidatedUpdate,
    ValidationResult,
)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
CONTENT_MIN_LENGTH = 10


def check_title(title: Optional[str]) -> Optional[ValidationError]:
    title = (title or "").strip()
    if not title:
        return ValidationError(ErrorCode.TITLE_REQUIRED, "title")
    if len(title) < TITLE_MIN_LENGTH:
        return ValidationError(ErrorCode.TITLE_TOO_SHORT, "title")
    if len(title) > TITLE_MAX_LENGTH:
        return ValidationError(ErrorCode.TITLE_TOO_LONG, "title")
    return None


def check_content(content: Optional[str]) -> Optional[ValidationError]:
    content = (content or "").strip()
    if not content:
        return ValidationError(ErrorCode.CONTENT_REQUIRED, "content")
    if len(content) < CONTENT_MIN_LENGTH:
        return ValidationError(ErrorCode.CONTENT_TOO_SHORT, "content")
    return None


def _clean_excerpt(excerpt: Optional[str]) -> Optional[str]:
    excerpt = (excerpt or "").strip()
    return excerpt or None


def validate_article(payload: ArticleInput) -> ValidationResult[ValidatedArticle]:
    """Validate a create payload."""
    error = check_title(payload.title) or check_content(payload.content)
    if error is not None:
        return ValidationResult(ok=False, error=error)

    data = payload.model_dump()
    data.update(
        title=payload.title.strip(),
        content=payload.content.strip(),
        excerpt=_clean_excerpt(payload.excerpt),
        slug=(payload.slug or "").strip() or None,
    )
    return ValidationResult(ok=True, value=ValidatedArticle(**data))


def validate_update(payload: ArticleUpdate) -> ValidationResult[ValidatedUpdate]:
    """Validate only the fields present in a partial update."""
    sent = payload.model_fields_set

    if "title" in sent:
        error = check_title(payload.title)
        if error is not None:
            return ValidationResult(ok=False, error=error)
    if "content" in sent:
        error = check_content(payload.content)
        if error is not None:
            return ValidationResult(ok=False, error=error)

    fields: Dict[str, Any] = {}
    for name in EDITABLE_FIELDS:
        if name not in sent:
            continue
        value = getattr(payload, name)
        if value is None and name in NON_NULLABLE_FIELDS:
            continue
        fields[name] = value

    if "title" in fields:
        fields["title"] = fields["title"].strip()
    if "content" in fields:
        fields["content"] = fields["content"].strip()
    if "excerpt" in fields:
        fields["excerpt"] = _clean_excerpt(fields["excerpt"])
    if "status" in fields:
        fields["status"] = fields["status"].value

    slug = None
    if "slug" in sent:
        slug = (payload.slug or "").strip() or None

    return ValidationResult(
        ok=True,
        value=ValidatedUpdate(
            fields=fields,
            slug=slug,
            categories=payload.categories if "categories" in sent else None,
            tags=payload.tags if "tags" in sent else None,
        ),
    )


def validate_status(status: Any) -> ValidationResult[ArticleStatus]:
    """Coerce a status value, rejecting anything outside the lifecycle."""
    try:
        return ValidationResult(ok=True, value=ArticleStatus(status))
    except ValueError:
        return ValidationResult(ok=False, error=ValidationError(ErrorCode.INVALID_STATUS, "status"))
