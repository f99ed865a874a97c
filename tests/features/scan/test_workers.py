from unittest.mock import MagicMock, patch

from perfwatch.features.scan.schemas.scan import ScanRequestResult, ScanRequestStatus
from perfwatch.features.scan.workers import tasks

TASKS = "perfwatch.features.scan.workers.tasks"


def test_run_scan_task_returns_result_and_closes_session():
    db = MagicMock()
    workflow = MagicMock()
    workflow.run_scan_request.return_value = ScanRequestResult(
        status=ScanRequestStatus.desktop_failed,
        scan_ids=["scan-1"],
        run_id="run-1",
        error="Lighthouse run failed: exit 1",
        error_type="AuditFailure",
    )

    with patch(f"{TASKS}.get_sync_db", return_value=db), \
         patch(f"{TASKS}.ScanWorkflow", return_value=workflow):
        result = tasks.run_scan_task.apply(args=["user-1", "https://example.com", ["mobile", "desktop"]]).get()

    workflow.run_scan_request.assert_called_once_with(
        "user-1", "https://example.com", ["mobile", "desktop"], None
    )
    assert result["status"] == "desktop_failed"
    assert result["scan_ids"] == ["scan-1"]
    assert result["user_id"] == "user-1"
    db.close.assert_called_once()


def test_rescan_task_closes_session_on_error():
    db = MagicMock()
    workflow = MagicMock()
    workflow.rescan.side_effect = RuntimeError("db down")

    with patch(f"{TASKS}.get_sync_db", return_value=db), \
         patch(f"{TASKS}.ScanWorkflow", return_value=workflow):
        outcome = tasks.rescan_task.apply(args=["user-1", "scan-1"])

    assert outcome.failed()
    db.close.assert_called_once()
