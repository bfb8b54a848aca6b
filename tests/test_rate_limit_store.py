"""Unit tests for rate limit store adapters."""

import copy
from unittest.mock import MagicMock, Mock

import pytest
from google.auth.credentials import AnonymousCredentials
from google.cloud import firestore
from google.cloud.firestore_v1.document import DocumentReference

from app.adapters.rate_limit.firestore import FirestoreRateLimitStore
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.services.rate_limiter import RateLimitConfig, SlidingWindowRateLimiter


class TestInMemoryRateLimitStore:
    def test_get_missing_returns_none(self) -> None:
        assert InMemoryRateLimitStore().get("missing") is None

    def test_put_overwrites(self) -> None:
        store = InMemoryRateLimitStore()
        store.put("k", {"requests": [1], "createdAt": 1})
        store.put("k", {"requests": [1, 2], "lastUpdated": 2})

        assert store.get("k") == {"requests": [1, 2], "lastUpdated": 2}

    def test_returned_records_are_copies(self) -> None:
        store = InMemoryRateLimitStore()
        record = {"requests": [1]}
        store.put("k", record)
        record["requests"].append(2)
        store.get("k")["requests"].append(3)

        assert store.get("k") == {"requests": [1]}

    def test_delete_expired(self) -> None:
        store = InMemoryRateLimitStore()
        store.put("a", {"expiresAt": 100})
        store.put("b", {"expiresAt": 200})
        store.put("c", {"expiresAt": 150})

        assert store.delete_expired(150) == 1
        assert len(store) == 2
        assert store.get("a") is None
        assert store.get("c") is not None


@pytest.fixture
def firestore_client() -> MagicMock:
    return MagicMock()


class TestFirestoreRateLimitStore:
    def test_requires_collection(self, firestore_client) -> None:
        with pytest.raises(ValueError):
            FirestoreRateLimitStore(firestore_client, collection="")

    def test_get_missing_document(self, firestore_client) -> None:
        snapshot = MagicMock(exists=False)
        firestore_client.collection.return_value.document.return_value.get.return_value = snapshot

        store = FirestoreRateLimitStore(firestore_client)

        assert store.get("user_1_checkout") is None
        firestore_client.collection.assert_called_with("rate_limits")
        firestore_client.collection.return_value.document.assert_called_with("user_1_checkout")

    def test_get_existing_document(self, firestore_client) -> None:
        snapshot = MagicMock(exists=True)
        snapshot.to_dict.return_value = {"requests": [1, 2]}
        firestore_client.collection.return_value.document.return_value.get.return_value = snapshot

        store = FirestoreRateLimitStore(firestore_client, collection="limits")

        assert store.get("k") == {"requests": [1, 2]}
        firestore_client.collection.assert_called_with("limits")

    def test_put_sets_full_document(self, firestore_client) -> None:
        store = FirestoreRateLimitStore(firestore_client)
        store.put("k", {"requests": [1]})

        document = firestore_client.collection.return_value.document.return_value
        document.set.assert_called_once_with({"requests": [1]})

    def test_delete_expired_batches_deletes(self, firestore_client) -> None:
        snapshots = [MagicMock(), MagicMock()]
        query = firestore_client.collection.return_value.where.return_value
        query.stream.return_value = iter(snapshots)
        batch = firestore_client.batch.return_value

        store = FirestoreRateLimitStore(firestore_client)

        assert store.delete_expired(1_000) == 2
        assert batch.delete.call_count == 2
        batch.delete.assert_any_call(snapshots[0].reference)
        batch.commit.assert_called_once()

    def test_delete_expired_nothing_to_delete(self, firestore_client) -> None:
        firestore_client.collection.return_value.where.return_value.stream.return_value = iter([])

        store = FirestoreRateLimitStore(firestore_client)

        assert store.delete_expired(1_000) == 0
        firestore_client.batch.return_value.commit.assert_not_called()

    def test_limiter_fails_open_when_firestore_errors(self, firestore_client) -> None:
        firestore_client.collection.return_value.document.return_value.get.side_effect = (
            RuntimeError("503 The service is currently unavailable")
        )
        limiter = SlidingWindowRateLimiter(FirestoreRateLimitStore(firestore_client))
        config = RateLimitConfig(max_requests=2, window_ms=1000, limit_name="Checkout")

        result = limiter.check_limit("user_1", config)

        assert result.allowed is True
        assert result.remaining == 2


@pytest.fixture
def offline_firestore(monkeypatch: pytest.MonkeyPatch) -> dict[str, dict]:
    """Real Firestore client and document references with reads/writes kept in a dict.

    Document paths are built and validated by the client library; only
    ``DocumentReference.get`` and ``.set`` are replaced.
    """
    documents: dict[str, dict] = {}

    def fake_get(self, *args, **kwargs):
        data = documents.get(self.path)
        snapshot = MagicMock(exists=data is not None)
        snapshot.to_dict.return_value = copy.deepcopy(data)
        return snapshot

    def fake_set(self, document_data, *args, **kwargs):
        documents[self.path] = copy.deepcopy(document_data)

    monkeypatch.setattr(DocumentReference, "get", fake_get)
    monkeypatch.setattr(DocumentReference, "set", fake_set)
    return documents


@pytest.fixture
def offline_store(offline_firestore) -> FirestoreRateLimitStore:
    client = firestore.Client(project="outreach-test", credentials=AnonymousCredentials())
    return FirestoreRateLimitStore(client)


class TestFirestoreDocumentPaths:
    def test_plain_subject_document_path(self, offline_firestore, offline_store) -> None:
        limiter = SlidingWindowRateLimiter(offline_store, clock=Mock(return_value=1_000.0))

        limiter.check_checkout_limit("user_1")

        assert list(offline_firestore) == ["rate_limits/user_1_checkout"]

    def test_subject_with_slash_maps_to_single_document(
        self, offline_firestore, offline_store
    ) -> None:
        limiter = SlidingWindowRateLimiter(offline_store, clock=Mock(return_value=1_000.0))

        limiter.check_checkout_limit("org/user_1")

        assert list(offline_firestore) == ["rate_limits/org%2Fuser_1_checkout"]
        assert offline_firestore["rate_limits/org%2Fuser_1_checkout"]["subjectId"] == "org/user_1"

    @pytest.mark.parametrize("subject_id", ["user/1", "a/b/c", "/", "user%2F1"])
    def test_subject_with_slash_is_limited(self, offline_store, subject_id: str) -> None:
        limiter = SlidingWindowRateLimiter(offline_store, clock=Mock(return_value=1_000.0))
        config = RateLimitConfig(max_requests=1, window_ms=60_000, limit_name="Checkout")

        results = [limiter.check_limit(subject_id, config) for _ in range(3)]

        assert [(r.allowed, r.remaining) for r in results] == [(True, 0), (False, 0), (False, 0)]
