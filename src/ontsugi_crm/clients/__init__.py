"""Remote store clients for Ontsugi CRM."""

from ontsugi_crm.clients.larkbase import (
    LarkBaseClient,
    LarkRecord,
    RecordPage,
)

__all__ = ["LarkBaseClient", "LarkRecord", "RecordPage"]
