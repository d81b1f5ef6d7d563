"""CLI entry point for the claims engine.

Commands read and drive claims stored in CLAIMS_DB_PATH:
- status/history for a single claim
- evidence upload (runs automated triage once the evidence set is complete)
- manual transitions and decision retries
- SLA and cost reports
"""

import json
import logging
import mimetypes
import sys
from pathlib import Path

from pydantic import ValidationError


def _setup_logging() -> None:
    """Configure logging for CLI usage."""
    from claims_engine.observability import get_logger

    get_logger("claims_engine")
    logging.getLogger("claims_engine").setLevel(
        logging.DEBUG if "--debug" in sys.argv else logging.INFO
    )


def _usage() -> str:
    return """Usage:
  claims-engine submit <claim.json>                    Submit a new claim
  claims-engine status <claim_id>                      Get claim status
  claims-engine history <claim_id>                     Get claim status history
  claims-engine upload <claim_id> <type> <file>        Upload evidence (photo, receipt, other)
  claims-engine decide <claim_id>                      Retry automated decisioning
  claims-engine transition <claim_id> <status> [note]  Move a claim as a claims handler
  claims-engine sla <claim_id>                         SLA state of a claim
  claims-engine overdue                                List claims past their SLA
  claims-engine costs <claim_id>                       Fulfillment cost summary
  claims-engine metrics                                Show in-process metrics

Options:
  --debug                                              Enable debug logging
  --json                                               Use JSON log format
"""


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _dump(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_submit(claim_path: Path) -> None:
    """Create a claim from a JSON file."""
    from claims_engine.db.repository import ClaimRepository, PolicyRepository
    from claims_engine.models.claim import ClaimInput

    if not claim_path.exists():
        _fail(f"File not found: {claim_path}")
    try:
        with open(claim_path, encoding="utf-8") as f:
            claim_data = json.load(f)
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON in {claim_path}: {e}")
    try:
        claim_input = ClaimInput.model_validate(claim_data)
    except ValidationError as e:
        print("Error: Invalid claim data:", file=sys.stderr)
        print(e.json(), file=sys.stderr)
        sys.exit(1)
    if PolicyRepository().get_policy(claim_input.policy_id) is None:
        _fail(f"Policy not found: {claim_input.policy_id}")
    claim = ClaimRepository().create_claim(claim_input)
    _dump(claim.model_dump(mode="json"))


def cmd_status(claim_id: str) -> None:
    """Print claim status."""
    from claims_engine.db.repository import ClaimRepository

    claim = ClaimRepository().get_claim(claim_id)
    if claim is None:
        _fail(f"Claim not found: {claim_id}")
    _dump(claim.model_dump(mode="json"))


def cmd_history(claim_id: str) -> None:
    """Print claim status history."""
    from claims_engine.db.repository import ClaimRepository

    repo = ClaimRepository()
    if repo.get_claim(claim_id) is None:
        _fail(f"Claim not found: {claim_id}")
    _dump([h.model_dump(mode="json") for h in repo.get_claim_history(claim_id)])


def cmd_upload(claim_id: str, document_type: str, file_path: Path) -> None:
    """Upload one evidence file and run the evidence gate."""
    from claims_engine.decisioning import DecisionOrchestrator
    from claims_engine.evidence import EvidenceGate, EvidenceUploadService, UploadedFile
    from claims_engine.db.repository import ClaimRepository
    from claims_engine.exceptions import ClaimsEngineError

    if not file_path.exists():
        _fail(f"File not found: {file_path}")
    content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    repo = ClaimRepository()
    orchestrator = DecisionOrchestrator(repo=repo)
    service = EvidenceUploadService(
        repo=repo,
        gate=EvidenceGate(repo),
        on_evidence_complete=orchestrator.on_evidence_complete,
    )
    try:
        result = service.upload_evidence(
            claim_id,
            document_type,
            UploadedFile(file_name=file_path.name, content_type=content_type, data=file_path.read_bytes()),
        )
    except ClaimsEngineError as e:
        _fail(str(e))
    finally:
        orchestrator.shutdown(wait=True)
    _dump({
        "stored": result.stored,
        "triggered_auto_decision": result.triggered_auto_decision,
        "document_id": result.document_id,
        "file_path": result.file_path,
        "decision_error": result.decision_error,
    })


def cmd_decide(claim_id: str) -> None:
    """Retry automated decisioning for a claim still in notified."""
    from claims_engine.decisioning import DecisionOrchestrator
    from claims_engine.exceptions import ClaimsEngineError

    orchestrator = DecisionOrchestrator()
    try:
        outcome = orchestrator.retry_decision(claim_id)
    except ClaimsEngineError as e:
        _fail(str(e))
    finally:
        orchestrator.shutdown(wait=True)
    _dump({
        "claim_id": outcome.claim_id,
        "verdict": outcome.verdict.value,
        "reason": outcome.reason,
        "status": outcome.claim.status.value,
        "decision": outcome.claim.decision.value if outcome.claim.decision else None,
        "fulfillment_created": outcome.fulfillment_created,
    })


def cmd_transition(claim_id: str, status: str, note: str) -> None:
    """Apply a claims-handler transition; accept/reject go through the manual decision path."""
    from claims_engine.decisioning import DecisionOrchestrator
    from claims_engine.exceptions import ClaimsEngineError
    from claims_engine.lifecycle import transition
    from claims_engine.models.claim import Actor, ClaimStatus

    try:
        target = ClaimStatus(status)
    except ValueError:
        choices = ", ".join(s.value for s in ClaimStatus)
        _fail(f"Unknown status: {status}. Expected one of: {choices}")
    try:
        if target in (ClaimStatus.ACCEPTED, ClaimStatus.REJECTED):
            orchestrator = DecisionOrchestrator()
            try:
                claim = orchestrator.apply_manual_decision(claim_id, target, note)
            finally:
                orchestrator.shutdown(wait=True)
        else:
            claim = transition(claim_id, target, note=note, actor=Actor.HUMAN)
    except ClaimsEngineError as e:
        _fail(str(e))
    _dump(claim.model_dump(mode="json"))


def cmd_sla(claim_id: str) -> None:
    from claims_engine.exceptions import ClaimNotFoundError
    from claims_engine.sla import SLAMonitor

    try:
        evaluation = SLAMonitor().evaluate(claim_id)
    except ClaimNotFoundError as e:
        _fail(str(e))
    _dump({
        "claim_id": claim_id,
        "status": evaluation.status.value,
        "state": evaluation.state.value,
        "hours_in_status": round(evaluation.hours_in_status, 2),
        "sla_hours": evaluation.sla_hours,
        "deadline": evaluation.deadline,
    })


def cmd_overdue() -> None:
    from claims_engine.sla import SLAMonitor

    rows = SLAMonitor().overdue_claims()
    if not rows:
        print("No overdue claims.")
        return
    _dump([
        {
            "claim_id": claim.id,
            "claim_number": claim.claim_number,
            "status": claim.status.value,
            "hours_in_status": round(evaluation.hours_in_status, 2),
            "sla_hours": evaluation.sla_hours,
            "deadline": evaluation.deadline,
        }
        for claim, evaluation in rows
    ])


def cmd_costs(claim_id: str) -> None:
    from claims_engine.exceptions import ClaimNotFoundError
    from claims_engine.fulfillment import FulfillmentService

    try:
        summary = FulfillmentService().cost_summary(claim_id)
    except ClaimNotFoundError as e:
        _fail(str(e))
    _dump(summary.model_dump(mode="json"))


def cmd_metrics() -> None:
    """Display in-process metrics."""
    from claims_engine.observability import get_metrics

    stats = get_metrics().get_stats()
    if not stats["counters"] and not stats["classifier_calls"]:
        print("No decisions have been made in the current session.")
        return
    _dump(stats)


_ONE_ARG_COMMANDS = {
    "status": cmd_status,
    "history": cmd_history,
    "decide": cmd_decide,
    "sla": cmd_sla,
    "costs": cmd_costs,
}


def main() -> None:
    """Run a claims-engine command."""
    import os

    argv = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    options = [arg for arg in sys.argv[1:] if arg.startswith("--")]

    if "--json" in options:
        os.environ["CLAIMS_ENGINE_LOG_FORMAT"] = "json"
    if "--debug" in options:
        os.environ["CLAIMS_ENGINE_LOG_LEVEL"] = "DEBUG"

    _setup_logging()

    if not argv:
        print(_usage(), file=sys.stderr)
        sys.exit(1)

    first = argv[0].lower()

    if first in _ONE_ARG_COMMANDS:
        if len(argv) < 2:
            print(f"Error: {first} requires <claim_id>", file=sys.stderr)
            print(_usage(), file=sys.stderr)
            sys.exit(1)
        _ONE_ARG_COMMANDS[first](argv[1])
        return

    if first == "submit":
        if len(argv) < 2:
            print("Error: submit requires <claim.json>", file=sys.stderr)
            print(_usage(), file=sys.stderr)
            sys.exit(1)
        cmd_submit(Path(argv[1]))
        return

    if first == "upload":
        if len(argv) < 4:
            print("Error: upload requires <claim_id> <type> <file>", file=sys.stderr)
            print(_usage(), file=sys.stderr)
            sys.exit(1)
        cmd_upload(argv[1], argv[2], Path(argv[3]))
        return

    if first == "transition":
        if len(argv) < 3:
            print("Error: transition requires <claim_id> <status>", file=sys.stderr)
            print(_usage(), file=sys.stderr)
            sys.exit(1)
        cmd_transition(argv[1], argv[2], " ".join(argv[3:]))
        return

    if first == "overdue":
        cmd_overdue()
        return

    if first == "metrics":
        cmd_metrics()
        return

    print(f"Error: Unknown command: {first}", file=sys.stderr)
    print(_usage(), file=sys.stderr)
    sys.exit(1)


if __name__ == "__main__":
    main()
