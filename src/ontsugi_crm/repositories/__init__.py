"""Persistence layer: Lark Base line-items and in-memory documents."""

from ontsugi_crm.repositories.document_store import DocumentStore, paginate
from ontsugi_crm.repositories.project_items import (
    ProjectItemRepository,
    item_to_fields,
    record_to_item,
)

__all__ = [
    "DocumentStore",
    "paginate",
    "ProjectItemRepository",
    "item_to_fields",
    "record_to_item",
]
