# Services module
from helpdesk.services.blob_store import BlobStore, LocalBlobStore, InMemoryBlobStore
from helpdesk.services.collaboration import CollaborationService, TicketView

__all__ = [
    "BlobStore",
    "LocalBlobStore",
    "InMemoryBlobStore",
    "CollaborationService",
    "TicketView",
]
