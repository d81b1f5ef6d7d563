"""Unit tests for CLI (main.py) commands and edge cases."""

import json
from io import StringIO
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from claims_engine.classifier.llm import DECISION_TOOL_NAME
from claims_engine.db.fulfillment_repository import FulfillmentRepository
from claims_engine.lifecycle import transition
from claims_engine.main import _usage, cmd_history, cmd_status, cmd_submit, main
from claims_engine.models.claim import ClaimStatus, Decision, DocumentType

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _completion(decision="accepted", reason="Valid claim"):
    call = SimpleNamespace(
        function=SimpleNamespace(
            name=DECISION_TOOL_NAME,
            arguments=json.dumps({"decision": decision, "reason": reason}),
        )
    )
    return SimpleNamespace(
        model="gpt-4o-mini",
        choices=[SimpleNamespace(message=SimpleNamespace(content=None, tool_calls=[call]))],
        usage=SimpleNamespace(prompt_tokens=80, completion_tokens=12),
    )


def _run(argv):
    """Run main() with argv and return parsed JSON stdout."""
    with patch("sys.argv", ["claims-engine", *argv]):
        with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
            main()
    return json.loads(mock_stdout.getvalue())


class TestUsage:

    def test_usage_lists_commands(self):
        result = _usage()
        for command in ("submit", "status", "history", "upload", "decide", "transition", "sla", "overdue", "costs"):
            assert command in result


class TestCommands:

    def test_cmd_status_found(self, claim):
        with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
            cmd_status(claim.id)
        data = json.loads(mock_stdout.getvalue())
        assert data["claim_number"] == claim.claim_number
        assert data["status"] == "notified"

    def test_cmd_status_not_found(self):
        with pytest.raises(SystemExit) as exc_info:
            cmd_status("missing")
        assert exc_info.value.code == 1

    def test_cmd_history_found(self, claim):
        with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
            cmd_history(claim.id)
        history = json.loads(mock_stdout.getvalue())
        assert [h["status"] for h in history] == ["notified"]

    def test_cmd_history_not_found(self):
        with pytest.raises(SystemExit):
            cmd_history("missing")

    def test_cmd_submit(self, policy, tmp_path, repo):
        path = tmp_path / "claim.json"
        path.write_text(json.dumps({
            "policy_id": policy.id,
            "claim_type": "breakdown",
            "description": "Phone no longer charges.",
        }))
        with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
            cmd_submit(path)
        data = json.loads(mock_stdout.getvalue())
        assert data["claim_number"].startswith("CLM-")
        assert repo.get_claim(data["id"]).status is ClaimStatus.NOTIFIED

    def test_cmd_submit_file_not_found(self, tmp_path):
        with pytest.raises(SystemExit):
            cmd_submit(tmp_path / "missing.json")

    def test_cmd_submit_invalid_json(self, tmp_path):
        path = tmp_path / "claim.json"
        path.write_text("{not json")
        with pytest.raises(SystemExit):
            cmd_submit(path)

    def test_cmd_submit_invalid_claim_type(self, policy, tmp_path):
        path = tmp_path / "claim.json"
        path.write_text(json.dumps({"policy_id": policy.id, "claim_type": "flood"}))
        with pytest.raises(SystemExit):
            cmd_submit(path)

    def test_cmd_submit_unknown_policy(self, tmp_path):
        path = tmp_path / "claim.json"
        path.write_text(json.dumps({"policy_id": "no-such-policy", "claim_type": "theft"}))
        with pytest.raises(SystemExit):
            cmd_submit(path)


class TestMain:

    @pytest.mark.parametrize("argv", [
        [],
        ["status"],
        ["history"],
        ["decide"],
        ["submit"],
        ["upload", "claim-1", "photo"],
        ["transition", "claim-1"],
        ["unknown_command"],
    ])
    def test_main_usage_errors(self, argv):
        with patch("sys.argv", ["claims-engine", *argv]):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1

    def test_main_status(self, claim):
        assert _run(["status", claim.id])["id"] == claim.id

    def test_main_transition_as_handler(self, claim, repo):
        transition(claim, ClaimStatus.REFERRED, repo=repo)
        data = _run(["transition", claim.id, "referred_pending_info", "Asked", "for", "invoice"])
        assert data["status"] == "referred_pending_info"
        history = repo.get_claim_history(claim.id)
        assert history[-1].note == "Asked for invoice"
        assert history[-1].actor.value == "human"

    def test_main_transition_reject(self, claim, repo):
        data = _run(["transition", claim.id, "rejected", "Not", "covered"])
        assert data["decision"] == "rejected"
        assert repo.get_claim_history(claim.id)[-1].note == "Manually rejected: Not covered"

    def test_main_transition_unknown_status(self, claim):
        with patch("sys.argv", ["claims-engine", "transition", claim.id, "approved"]):
            with pytest.raises(SystemExit):
                main()

    def test_main_transition_illegal_edge(self, claim, repo):
        with patch("sys.argv", ["claims-engine", "transition", claim.id, "repair"]):
            with pytest.raises(SystemExit):
                main()
        assert repo.get_claim(claim.id).status is ClaimStatus.NOTIFIED

    def test_main_upload_runs_decision(self, claim, repo, tmp_path, monkeypatch):
        mock_completion = MagicMock(return_value=_completion("accepted", "Photos match"))
        monkeypatch.setattr("litellm.completion", mock_completion)
        photo = tmp_path / "front.png"
        photo.write_bytes(PNG_BYTES)
        receipt = tmp_path / "receipt.pdf"
        receipt.write_bytes(b"%PDF-1.4 receipt")

        first = _run(["upload", claim.id, "photo", str(photo)])
        assert first["stored"] is True
        assert first["triggered_auto_decision"] is False
        second = _run(["upload", claim.id, "receipt", str(receipt)])
        assert second["triggered_auto_decision"] is True
        assert second["decision_error"] is None

        current = repo.get_claim(claim.id)
        assert current.status is ClaimStatus.ACCEPTED
        assert current.decision is Decision.APPROVED
        assert repo.get_evidence_types(claim.id) == {DocumentType.PHOTO, DocumentType.RECEIPT}
        assert FulfillmentRepository(repo.db_path).get_fulfillment(claim.id) is not None
        assert mock_completion.call_count == 1

    def test_main_upload_rejects_bad_content_type(self, claim, tmp_path):
        text = tmp_path / "notes.txt"
        text.write_text("not an image")
        with patch("sys.argv", ["claims-engine", "upload", claim.id, "photo", str(text)]):
            with pytest.raises(SystemExit):
                main()

    def test_main_decide_without_evidence(self, claim, monkeypatch):
        monkeypatch.setattr("litellm.completion", MagicMock(return_value=_completion()))
        with patch("sys.argv", ["claims-engine", "decide", claim.id]):
            with pytest.raises(SystemExit):
                main()

    def test_main_decide_retry(self, claim, repo, monkeypatch):
        monkeypatch.setattr("litellm.completion", MagicMock(return_value=_completion("referred", "Unclear")))
        for document_type in (DocumentType.PHOTO, DocumentType.RECEIPT):
            repo.add_evidence(claim.id, document_type, f"{document_type.value}.jpg", f"x/{document_type.value}.jpg")
        data = _run(["decide", claim.id])
        assert data["verdict"] == "referred"
        assert data["status"] == "referred"
        assert data["fulfillment_created"] is False

    def test_main_sla(self, claim):
        data = _run(["sla", claim.id])
        assert data["status"] == "notified"
        assert data["state"] == "no_sla"

    def test_main_overdue_empty(self, claim):
        with patch("sys.argv", ["claims-engine", "overdue"]):
            with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
                main()
        assert "No overdue claims." in mock_stdout.getvalue()

    def test_main_costs(self, claim, repo):
        transition(claim, ClaimStatus.ACCEPTED, repo=repo, fulfillment_excess=50.0)
        data = _run(["costs", claim.id])
        assert data["total_cost"] == 0.0
        assert data["excess_amount"] == 50.0

    def test_main_costs_without_fulfillment(self, claim):
        with patch("sys.argv", ["claims-engine", "costs", claim.id]):
            with pytest.raises(SystemExit):
                main()

    def test_main_metrics_empty(self):
        with patch("sys.argv", ["claims-engine", "metrics"]):
            with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
                main()
        assert "No decisions" in mock_stdout.getvalue()
