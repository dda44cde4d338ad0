"""Paged fetch/merge over offset-limit sources."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

from .constants import FETCH_AT_MOST, INDEXER_PAGE_SIZE
from .errors import PaginationError
from .logger import get_logger

logger = get_logger(__name__)

PageT = TypeVar("PageT")


def _governing_count(counts: int | Sequence[int]) -> int:
    """Reduce one or several per-list counts to the one that drives continuation."""
    if isinstance(counts, int):
        return counts
    return max(counts, default=0)


async def paginate(
    fetch_page: Callable[[int, int], Awaitable[PageT]],
    count: Callable[[PageT], int | Sequence[int]],
    merge: Callable[[PageT, PageT], PageT],
    *,
    page_size: int = INDEXER_PAGE_SIZE,
    fetch_at_most: int = FETCH_AT_MOST,
    delay: float = 0.0,
) -> PageT:
    """Fetch every page of a source and fold them into a single result.

    Pages are requested one after the other at offsets 0, page_size,
    2*page_size, ... until a page comes back short (its governing count is
    below ``page_size``) or ``fetch_at_most`` rows have been fetched.

    Args:
        fetch_page: Coroutine factory called with ``(offset, limit)``.
        count: Row count of a page. When a page holds several lists, return
            one count per list; the largest decides whether to continue.
        merge: Combines the accumulated result with the next page.
        page_size: Rows requested per page.
        fetch_at_most: Ceiling on the number of rows fetched.
        delay: Seconds to wait between requests, to go easy on the source.

    Returns:
        Left fold of all fetched pages with ``merge``, in fetch order.

    Raises:
        ValueError: If ``page_size`` is not positive.
        PaginationError: If no page was fetched at all.
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")

    pages: list[PageT] = []
    offset = 0
    fetched = 0

    while fetched < fetch_at_most:
        page = await fetch_page(offset, page_size)
        pages.append(page)

        page_count = _governing_count(count(page))
        if page_count < page_size:
            break

        fetched += page_count
        offset += page_size
        logger.debug("Fetched %d rows so far, next offset %d", fetched, offset)

        if delay > 0:
            await asyncio.sleep(delay)

    if not pages:
        raise PaginationError("No results found")

    result = pages[0]
    for page in pages[1:]:
        result = merge(result, page)
    return result
