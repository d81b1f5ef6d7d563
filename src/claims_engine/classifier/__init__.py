"""Decision classifier adapter and the LiteLLM-backed implementation."""

from claims_engine.classifier.adapter import (
    ClassificationRequest,
    ClassificationResult,
    ClassifierAdapter,
    DecisionClassifier,
    EvidenceFlags,
    RawClassification,
    build_request,
    coerce_verdict,
)
from claims_engine.classifier.llm import LiteLLMClassifier

__all__ = [
    "ClassificationRequest",
    "ClassificationResult",
    "ClassifierAdapter",
    "DecisionClassifier",
    "EvidenceFlags",
    "LiteLLMClassifier",
    "RawClassification",
    "build_request",
    "coerce_verdict",
]
