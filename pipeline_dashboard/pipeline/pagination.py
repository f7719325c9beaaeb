"""
Count-then-page helpers shared by every listing.

The total is always counted over the filtered, unpaginated query. A page is
only cut when the limit is positive and smaller than that total; otherwise
the whole filtered set is returned.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..errors import ValidationError

logger = structlog.get_logger()

MAX_PAGE_LIMIT = 1000


def check_pagination(limit: Optional[int], page: Optional[int], max_limit: int = MAX_PAGE_LIMIT):
    """Validate raw pagination input, returning ``(limit, page)``.

    A missing limit means "no limit" and a missing or zero page means the
    first page.
    """
    limit = limit or 0
    page = page or 1
    if limit > max_limit:
        raise ValidationError(f"invalid query parameters: limit exceeds maximum of {max_limit}")
    if limit < 0:
        raise ValidationError("invalid query parameters: invalid limit value")
    if page < 0:
        raise ValidationError("invalid query parameters: invalid page value")
    return limit, page


def count_rows(db: Session, query: Query, context: str) -> int:
    """Count the rows of ``query``, falling back to zero when the count fails."""
    try:
        return query.order_by(None).count()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("total_count_failed", query=context, error=str(exc))
        return 0


def paginate(query: Query, limit: int, page: int, total_count: int) -> Query:
    """Apply limit/offset only when ``0 < limit < total_count``."""
    if 0 < limit < total_count:
        page = max(page, 1)
        query = query.offset((page - 1) * limit).limit(limit)
    return query
