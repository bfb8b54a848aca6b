"""Firestore-backed rate limit store.

Each record is a document in a single collection (``rate_limits`` by default)
whose id is the limiter's composite key. Writes are plain ``set`` calls: full
overwrites without preconditions, so concurrent writers race (last write wins).
"""

from __future__ import annotations

import logging

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitRecord

logger = logging.getLogger(__name__)

# Firestore caps a write batch at 500 operations
_MAX_BATCH_SIZE = 500


class FirestoreRateLimitStore(AbstractRateLimitStore):
    """Store rate limit records as Firestore documents."""

    def __init__(
        self,
        client: firestore.Client,
        *,
        collection: str = "rate_limits",
    ) -> None:
        """Initialize the store.

        Args:
            client: Configured Firestore client.
            collection: Collection name holding the records.

        Raises:
            ValueError: If collection is empty.
        """
        if not collection:
            raise ValueError("collection must be a non-empty string")

        self._client = client
        self._collection_name = collection

    @classmethod
    def from_settings(
        cls,
        *,
        project_id: str | None,
        database: str | None,
        collection: str,
    ) -> "FirestoreRateLimitStore":
        """Build a store with a client created from configuration values."""
        kwargs = {}
        if project_id:
            kwargs["project"] = project_id
        if database:
            kwargs["database"] = database
        return cls(firestore.Client(**kwargs), collection=collection)

    def _collection(self):
        return self._client.collection(self._collection_name)

    def get(self, key: str) -> RateLimitRecord | None:
        snapshot = self._collection().document(key).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def put(self, key: str, record: RateLimitRecord) -> None:
        self._collection().document(key).set(record)

    def delete_expired(self, before_ms: int) -> int:
        query = self._collection().where(
            filter=FieldFilter("expiresAt", "<", before_ms)
        )

        deleted = 0
        batch = self._client.batch()
        pending = 0
        for snapshot in query.stream():
            batch.delete(snapshot.reference)
            pending += 1
            if pending == _MAX_BATCH_SIZE:
                batch.commit()
                deleted += pending
                batch = self._client.batch()
                pending = 0

        if pending:
            batch.commit()
            deleted += pending

        logger.info(
            "rate_limit_store.expired_deleted",
            extra={
                "collection": self._collection_name,
                "deleted": deleted,
                "before_ms": before_ms,
            },
        )
        return deleted
