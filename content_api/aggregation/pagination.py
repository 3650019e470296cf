"""Page/limit/offset arithmetic shared by every listing."""
from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

from content_api.config import settings
from content_api.errors import InvalidRequestError
from content_api.schemas import PagedResult

T = TypeVar("T")


def total_pages(total: int, limit: int) -> int:
    """ceil(total / limit); 0 when there is nothing to page through."""
    if total <= 0:
        return 0
    return (total + limit - 1) // limit


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 20

    def __post_init__(self) -> None:
        if self.page < 1 or self.limit < 1:
            raise InvalidRequestError(
                f"page and limit must be at least 1 (got page={self.page}, limit={self.limit})"
            )

    @classmethod
    def from_params(cls, page: Optional[int] = None, limit: Optional[int] = None) -> "Pagination":
        page = max(page or 1, 1)
        limit = max(limit or settings.default_page_size, 1)
        return cls(page=page, limit=min(limit, settings.max_page_size))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def result(self, data: Sequence[T], total: int) -> PagedResult[T]:
        return PagedResult(
            data=list(data),
            total=total,
            page=self.page,
            limit=self.limit,
            total_pages=total_pages(total, self.limit),
        )
