"""
Unit Tests for the contact listing engine

Run with: pytest tests/test_query_engine.py -v
"""

import pytest

from services.query_engine import (
    ContactQuery,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    PagedResult,
    owned_by,
    sort_columns,
)


class TestContactQueryClamping:

    def test_defaults(self):
        query = ContactQuery.build()
        assert query.page == 1
        assert query.page_size == DEFAULT_PAGE_SIZE
        assert query.sort_by == "name"
        assert query.sort_descending is False
        assert query.search is None

    @pytest.mark.parametrize("page", [0, -3, None])
    def test_page_below_one_becomes_one(self, page):
        assert ContactQuery.build(page=page).page == 1

    @pytest.mark.parametrize("page_size,expected", [
        (0, DEFAULT_PAGE_SIZE),
        (-5, DEFAULT_PAGE_SIZE),
        (250, MAX_PAGE_SIZE),
        (100, 100),
        (1, 1),
    ])
    def test_page_size_clamped(self, page_size, expected):
        assert ContactQuery.build(page_size=page_size).page_size == expected

    def test_sort_key_is_case_insensitive(self):
        assert ContactQuery.build(sort_by="CreatedAt").sort_by == "createdat"

    def test_unknown_sort_key_falls_back_to_name(self):
        assert ContactQuery.build(sort_by="favourite_colour").sort_by == "name"

    def test_blank_search_is_no_search(self):
        assert ContactQuery.build(search="   ").search is None
        assert ContactQuery.build(search=" john ").search == "john"

    def test_offset(self):
        assert ContactQuery.build(page=3, page_size=20).offset == 40


class TestPagedResult:

    def test_partial_last_page(self):
        page = PagedResult(items=[], total_count=11, page=2, page_size=5)
        assert page.total_pages == 3
        assert page.has_next_page
        assert page.has_previous_page

    def test_last_page_has_no_next(self):
        page = PagedResult(items=[], total_count=10, page=2, page_size=5)
        assert page.total_pages == 2
        assert not page.has_next_page

    def test_page_past_the_end(self):
        page = PagedResult(items=[], total_count=3, page=4, page_size=5)
        assert page.total_pages == 1
        assert not page.has_next_page
        assert page.has_previous_page


class TestPredicates:

    def test_owner_is_required(self):
        with pytest.raises(ValueError):
            owned_by("")

    def test_active_predicate_mentions_soft_delete_flag(self):
        assert "is_deleted" in str(owned_by("user-a"))
        assert "is_deleted" not in str(owned_by("user-a", deleted=None))

    def test_every_sort_ends_with_id(self):
        for key in ("name", "birthdate", "email", "createdat"):
            columns = sort_columns(key, descending=False)
            assert "contacts.id" in str(columns[-1])
