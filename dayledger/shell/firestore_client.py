"""Firestore Client - Remote mirror for activity ledgers.

The ledger core treats the remote store as a key-addressed document service:
fetch a document by id, or upsert selected fields of it. All Firestore I/O is
contained here.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from google.cloud import firestore


logger = logging.getLogger(__name__)

ACTIVITIES = "activities"


class RemoteMirror(Protocol):
    """Interface the ledger core needs from the remote store."""

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    def upsert(
        self,
        collection: str,
        doc_id: str,
        doc: dict[str, Any],
        merge: bool | list[str] = True,
    ) -> bool: ...


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


class ActivityFirestoreClient:
    """Remote mirror backed by Firestore.

    Document structure:
        activities/{user_id}_{YYYY-MM-DD}: { userId, date, steps, meals: [...], ... }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _doc_ref(self, collection: str, doc_id: str) -> firestore.DocumentReference:
        return self.client.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Fetch a document.

        Args:
            collection: Collection name
            doc_id: Document ID

        Returns:
            Document fields if found, None if missing or unreachable
        """
        logger.debug("Fetching %s/%s", collection, doc_id)
        try:
            doc = self._doc_ref(collection, doc_id).get()
            if not doc.exists:
                return None
            return doc.to_dict()
        except Exception as e:
            logger.error("Failed to fetch %s/%s: %s", collection, doc_id, str(e))
            return None

    def upsert(
        self,
        collection: str,
        doc_id: str,
        doc: dict[str, Any],
        merge: bool | list[str] = True,
    ) -> bool:
        """Write a document.

        merge=True merges nested maps key by key. A list of field paths
        replaces exactly those fields and leaves the rest of the document
        alone. merge=False replaces the whole document.

        Args:
            collection: Collection name
            doc_id: Document ID
            doc: Fields to write
            merge: True, False, or the field paths to overwrite

        Returns:
            True if successful
        """
        logger.debug("Upserting %s/%s (merge=%s)", collection, doc_id, merge)
        try:
            self._doc_ref(collection, doc_id).set(doc, merge=merge)
            return True
        except Exception as e:
            logger.error("Failed to upsert %s/%s: %s", collection, doc_id, str(e))
            return False
