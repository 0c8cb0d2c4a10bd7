"""Drain a page-number/page-size API into one ordered list."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


def collect_pages(fetch: Callable[[int, int], tuple[list[T], int]], page_size: int) -> list[T]:
    """Call ``fetch(page_number, page_size)`` from page 1 until the reported total is covered.

    Stops once ``page_number * page_size >= total_count``, using the total reported by the
    most recent page. A provider that changes its total mid-run may cause pages to be
    skipped or fetched past the end; no attempt is made to correct for that.

    Exceptions raised by ``fetch`` propagate unchanged and nothing accumulated so far is
    returned.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be positive, got {page_size}")

    items: list[T] = []
    page_number = 1
    while True:
        page, total_count = fetch(page_number, page_size)
        items.extend(page)
        logger.debug(
            "Fetched page %d (%d items, total %d)", page_number, len(page), total_count,
        )
        if page_number * page_size >= total_count:
            break
        page_number += 1
    return items
