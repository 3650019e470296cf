import pytest

from content_api.aggregation import Pagination, total_pages
from content_api.errors import InvalidRequestError


class TestTotalPages:
    @pytest.mark.parametrize(
        "total, limit, expected",
        [(0, 20, 0), (1, 20, 1), (20, 20, 1), (21, 20, 2), (99, 10, 10), (100, 10, 10)],
    )
    def test_is_ceiling_of_total_over_limit(self, total, limit, expected):
        assert total_pages(total, limit) == expected


class TestPagination:
    def test_defaults(self):
        page = Pagination.from_params()
        assert (page.page, page.limit, page.offset) == (1, 20, 0)

    def test_offset(self):
        assert Pagination.from_params(3, 25).offset == 50

    def test_out_of_range_values_are_clamped(self):
        page = Pagination.from_params(page=0, limit=10_000)
        assert page.page == 1
        assert page.limit == 100

    @pytest.mark.parametrize("page, limit", [(1, 0), (0, 20), (-1, 5)])
    def test_direct_construction_rejects_non_positive_values(self, page, limit):
        with pytest.raises(InvalidRequestError):
            Pagination(page=page, limit=limit)

    def test_empty_result_has_no_pages_whatever_the_page(self):
        result = Pagination.from_params(page=7, limit=5).result([], 0)
        assert result.data == []
        assert result.total == 0
        assert result.total_pages == 0
        assert result.page == 7

    def test_result_carries_page_metadata(self):
        result = Pagination.from_params(page=2, limit=2).result(["c", "d"], 5)
        assert result.model_dump() == {
            "data": ["c", "d"],
            "total": 5,
            "page": 2,
            "limit": 2,
            "total_pages": 3,
        }
