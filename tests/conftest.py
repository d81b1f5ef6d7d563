"""Shared pytest fixtures for all test files."""

import os
import tempfile
import threading

import pytest

from claims_engine.classifier.adapter import RawClassification
from claims_engine.db.database import init_db
from claims_engine.db.repository import ClaimRepository, PolicyRepository
from claims_engine.exceptions import ClassifierUnavailableError
from claims_engine.models.claim import ClaimInput, ClaimType


@pytest.fixture(autouse=True)
def temp_db():
    """Use a temporary SQLite DB for tests."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    init_db(path)
    prev = os.environ.get("CLAIMS_DB_PATH")
    os.environ["CLAIMS_DB_PATH"] = path
    try:
        yield path
    finally:
        if prev is None:
            os.environ.pop("CLAIMS_DB_PATH", None)
        else:
            os.environ["CLAIMS_DB_PATH"] = prev
        try:
            os.unlink(path)
        except OSError:
            pass


@pytest.fixture(autouse=True)
def blob_root(tmp_path, monkeypatch):
    """Keep evidence blobs inside the test's temp directory."""
    root = tmp_path / "blobs"
    monkeypatch.setenv("CLAIMS_BLOB_ROOT", str(root))
    return root


@pytest.fixture(autouse=True)
def reset_global_metrics():
    """Reset the global EngineMetrics singleton before and after each test."""
    from claims_engine.observability.metrics import reset_metrics

    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def repo(temp_db):
    return ClaimRepository(temp_db)


@pytest.fixture
def policy_repo(temp_db):
    return PolicyRepository(temp_db)


@pytest.fixture
def product(policy_repo):
    return policy_repo.create_product(
        "Phone Protect Plus",
        excess_1=50.0,
        coverage=["accidental damage", "breakdown", "theft"],
    )


@pytest.fixture
def policy(policy_repo, product):
    return policy_repo.create_policy(
        "POL-1001",
        product.id,
        program_id="PRG-RETAIL",
        customer_name="Alex Doe",
        customer_email="alex@example.com",
    )


@pytest.fixture
def claim(repo, policy):
    return repo.create_claim(
        ClaimInput(
            policy_id=policy.id,
            claim_type=ClaimType.DAMAGE,
            description="Dropped the phone, screen cracked across the top corner.",
        )
    )


class FakeClassifier:
    """DecisionClassifier returning a fixed answer, or raising a given error."""

    model = "fake-classifier"

    def __init__(self, decision="accepted", reason="Valid claim", error=None, gate=None):
        self.decision = decision
        self.reason = reason
        self.error = error
        self.gate = gate
        self.requests = []
        self._lock = threading.Lock()

    def classify(self, request, timeout):
        with self._lock:
            self.requests.append(request)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return RawClassification(decision=self.decision, reason=self.reason)


@pytest.fixture
def accepting_classifier():
    return FakeClassifier("accepted", "Valid claim")


@pytest.fixture
def referring_classifier():
    return FakeClassifier("referred", "Description does not match the photos")


@pytest.fixture
def rate_limited_classifier():
    return FakeClassifier(error=ClassifierUnavailableError("Classifier unavailable: rate limit exceeded"))


class RecordingDispatcher:
    """NotificationDispatcher that keeps every notification it is given."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, notification):
        if self.fail:
            raise ConnectionError("SMTP relay unreachable")
        self.sent.append(notification)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def make_classifier():
    """Factory for FakeClassifier with custom answers."""
    return FakeClassifier


@pytest.fixture
def make_dispatcher():
    return RecordingDispatcher
