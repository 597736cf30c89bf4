"""Cursor-following pagination over AWS list APIs.

Every list call s3du makes has the same shape: request a page, take its
items, and repeat with the cursor from the response until no cursor comes
back. Page fetch functions do the request and cursor extraction; `paginate`
drives them.
"""

from dataclasses import dataclass
from threading import Event
from typing import Any, Callable, Generic, Iterator, Mapping, Optional, Sequence, TypeVar

from s3du.providers.base import PaginationError, SizingCancelledError
from s3du.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
C = TypeVar("C")


@dataclass(frozen=True)
class Page(Generic[T, C]):
    """One page of list results and the cursor for the next one, if any."""

    items: Sequence[T]
    cursor: Optional[C] = None


def next_cursor(
    response: Mapping[str, Any],
    *cursor_keys: str,
    truncated_key: Optional[str] = "IsTruncated",
) -> Any:
    """Extract the continuation cursor from a list response.

    Args:
        response: Decoded API response.
        cursor_keys: Response keys making up the cursor. With more than one
            key the cursor is a tuple of their values.
        truncated_key: Response flag saying more pages exist. When None the
            presence of the cursor alone decides.

    Returns:
        The cursor, or None when the listing is complete.

    Raises:
        PaginationError: If the response is flagged truncated but carries no
            cursor to continue from.
    """
    values = tuple(response.get(key) or None for key in cursor_keys)

    if truncated_key is None:
        truncated = any(value is not None for value in values)
    else:
        truncated = bool(response.get(truncated_key))

    if not truncated:
        return None

    if all(value is None for value in values):
        raise PaginationError(
            f"Response truncated without continuation cursor ({', '.join(cursor_keys)})"
        )

    return values[0] if len(values) == 1 else values


def paginate(
    fetch_page: Callable[[Optional[C]], Page[T, C]],
    cancel_event: Optional[Event] = None,
    operation: str = "list",
) -> Iterator[T]:
    """Yield items from every page until the provider stops returning a cursor.

    The first page is requested with a cursor of None. Empty pages that still
    carry a cursor do not end the listing. Errors from `fetch_page` propagate
    unchanged, so callers that only return after exhausting the iterator
    never hand out partial results.

    Args:
        fetch_page: Fetches the page for a cursor.
        cancel_event: Checked before each request; once set the listing
            stops with SizingCancelledError.
        operation: Name used in log events.

    Raises:
        SizingCancelledError: If cancel_event was set.
    """
    cursor: Optional[C] = None
    pages = 0

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise SizingCancelledError(f"{operation} cancelled after {pages} page(s)")

        page = fetch_page(cursor)
        pages += 1

        logger.debug(
            "page_fetched",
            operation=operation,
            page=pages,
            items=len(page.items),
            more=page.cursor is not None,
        )

        yield from page.items

        if page.cursor is None:
            break
        cursor = page.cursor
