"""In-memory keyed store for quotes and invoices."""

from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

from ontsugi_crm.models import Page

T = TypeVar("T")


class DocumentStore(Generic[T]):
    """Insertion-ordered in-process store keyed by document id.

    The store is owned by the caller and handed to services; nothing is
    shared between instances.
    """

    def __init__(self, key: Callable[[T], str] = lambda doc: doc.id):  # type: ignore[attr-defined]
        self._key = key
        self._documents: dict[str, T] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._documents

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._documents.values()))

    def get(self, doc_id: str) -> T | None:
        return self._documents.get(doc_id)

    def save(self, document: T) -> T:
        """Insert or replace a document."""
        self._documents[self._key(document)] = document
        return document

    def delete(self, doc_id: str) -> bool:
        """Remove a document; returns whether it existed."""
        return self._documents.pop(doc_id, None) is not None

    def values(self) -> list[T]:
        return list(self._documents.values())

    def clear(self) -> None:
        self._documents.clear()


def paginate(items: list[T], page: int, page_size: int) -> Page[T]:
    """Slice a fully filtered list into one 1-based page."""
    start = (page - 1) * page_size
    return Page(
        items=items[start : start + page_size],
        total=len(items),
        page=page,
        page_size=page_size,
        has_more=start + page_size < len(items),
    )
