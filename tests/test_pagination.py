"""Tests for page draining."""

import pytest

from prometheus_ali_sd.discovery.pagination import collect_pages
from prometheus_ali_sd.exceptions import SourceError


class FakePages:
    """Serves ``total`` integers in pages and records every call."""

    def __init__(self, total: int, totals: list[int] | None = None):
        self.total = total
        self.totals = totals
        self.calls: list[tuple[int, int]] = []

    def __call__(self, page_number: int, page_size: int):
        self.calls.append((page_number, page_size))
        start = (page_number - 1) * page_size
        items = list(range(start, min(start + page_size, self.total)))
        reported = self.totals[page_number - 1] if self.totals else self.total
        return items, reported


class TestCollectPages:
    def test_partial_last_page(self):
        fetch = FakePages(total=25)
        items = collect_pages(fetch, 10)
        assert fetch.calls == [(1, 10), (2, 10), (3, 10)]
        assert items == list(range(25))

    def test_exact_multiple_stops_without_extra_call(self):
        fetch = FakePages(total=20)
        items = collect_pages(fetch, 10)
        assert len(fetch.calls) == 2
        assert len(items) == 20

    def test_empty_total_fetches_one_page(self):
        fetch = FakePages(total=0)
        assert collect_pages(fetch, 10) == []
        assert fetch.calls == [(1, 10)]

    def test_trusts_latest_total(self):
        # Provider reports 30 on page 1 but 15 on page 2: loop stops after page 2
        fetch = FakePages(total=30, totals=[30, 15, 30])
        items = collect_pages(fetch, 10)
        assert len(fetch.calls) == 2
        assert items == list(range(20))

    def test_error_propagates(self):
        calls = []

        def fetch(page_number, page_size):
            calls.append(page_number)
            if page_number == 2:
                raise SourceError("boom")
            return [1] * page_size, 50

        with pytest.raises(SourceError, match="boom"):
            collect_pages(fetch, 10)
        assert calls == [1, 2]

    def test_rejects_non_positive_page_size(self):
        with pytest.raises(ValueError):
            collect_pages(FakePages(total=5), 0)
