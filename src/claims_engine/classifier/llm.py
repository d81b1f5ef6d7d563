"""LiteLLM-backed DecisionClassifier using a forced tool call for structured output."""

import json
import logging

import litellm

from claims_engine.classifier.adapter import ClassificationRequest, RawClassification
from claims_engine.config.llm import get_llm_kwargs
from claims_engine.config.settings import get_classifier_config
from claims_engine.exceptions import ClassifierUnavailableError
from claims_engine.utils.retry import RETRYABLE_EXCEPTIONS, with_classifier_retry

logger = logging.getLogger(__name__)

DECISION_TOOL_NAME = "process_claim_decision"

SYSTEM_PROMPT = """You are a claims triage assistant for a device insurance programme.
Decide whether a claim can be automatically accepted or must be referred to a human handler.

Rules:
- Accept only when the description is consistent with the claim type, the product covers it,
  and both a photo and a proof-of-purchase receipt are on file.
- Refer anything unclear, inconsistent, or outside coverage.
- Never reject a claim automatically.

Call the process_claim_decision tool exactly once with your decision and a short reason."""

DECISION_TOOL = {
    "type": "function",
    "function": {
        "name": DECISION_TOOL_NAME,
        "description": "Record the triage decision for a claim",
        "parameters": {
            "type": "object",
            "properties": {
                "decision": {
                    "type": "string",
                    "enum": ["accepted", "referred"],
                    "description": "accepted to auto-approve, referred for manual review",
                },
                "reason": {
                    "type": "string",
                    "description": "Short explanation, at most 200 characters",
                },
            },
            "required": ["decision", "reason"],
        },
    },
}


def _user_prompt(request: ClassificationRequest) -> str:
    flags = request.evidence_flags
    coverage = ", ".join(request.coverage) if request.coverage else "not specified"
    return (
        f"Claim number: {request.claim_number}\n"
        f"Claim type: {request.claim_type}\n"
        f"Product: {request.product_name}\n"
        f"Coverage: {coverage}\n"
        f"Photo on file: {'yes' if flags.has_photo else 'no'}\n"
        f"Receipt on file: {'yes' if flags.has_receipt else 'no'}\n"
        f"Description:\n{request.description or '(none)'}"
    )


def parse_tool_call(response) -> tuple[str | None, str]:
    """Extract (decision, reason) from a completion response.

    Returns (None, "") when the model did not call the tool or sent malformed arguments.
    """
    try:
        message = response.choices[0].message
        tool_calls = getattr(message, "tool_calls", None) or []
    except (AttributeError, IndexError, TypeError):
        return None, ""
    for call in tool_calls:
        function = getattr(call, "function", None)
        if function is None or getattr(function, "name", None) != DECISION_TOOL_NAME:
            continue
        try:
            args = json.loads(function.arguments or "{}")
        except (TypeError, ValueError):
            logger.warning("Classifier tool call had malformed arguments")
            return None, ""
        if not isinstance(args, dict):
            return None, ""
        return args.get("decision"), str(args.get("reason") or "")
    return None, ""


class LiteLLMClassifier:
    """Calls an LLM through litellm.completion and forces the decision tool."""

    def __init__(self, llm_kwargs: dict | None = None, retry_config: dict | None = None):
        self._llm_kwargs = llm_kwargs if llm_kwargs is not None else get_llm_kwargs()
        self._retry_config = retry_config if retry_config is not None else get_classifier_config()

    @property
    def model(self) -> str:
        return self._llm_kwargs.get("model", "unknown")

    def _complete(self, request: ClassificationRequest, timeout: float):
        return litellm.completion(
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _user_prompt(request)},
            ],
            tools=[DECISION_TOOL],
            tool_choice={"type": "function", "function": {"name": DECISION_TOOL_NAME}},
            timeout=timeout,
            temperature=0,
            **self._llm_kwargs,
        )

    def classify(self, request: ClassificationRequest, timeout: float) -> RawClassification:
        cfg = self._retry_config
        call = with_classifier_retry(
            max_attempts=cfg.get("max_attempts", 3),
            min_wait=cfg.get("min_wait", 2.0),
            max_wait=cfg.get("max_wait", 10.0),
        )(self._complete)
        try:
            response = call(request, timeout)
        except RETRYABLE_EXCEPTIONS as e:
            raise ClassifierUnavailableError(f"Classifier unavailable: {e}") from e
        except (litellm.AuthenticationError, litellm.BadRequestError) as e:
            raise ClassifierUnavailableError(f"Classifier rejected request: {e}", retryable=False) from e
        except Exception as e:
            raise ClassifierUnavailableError(f"Classifier error: {e}", retryable=False) from e

        decision, reason = parse_tool_call(response)
        usage = getattr(response, "usage", None)
        return RawClassification(
            decision=decision,
            reason=reason,
            model=getattr(response, "model", None) or self.model,
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )
