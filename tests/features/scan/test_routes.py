from unittest.mock import MagicMock, patch

import pytest

from perfwatch.features.scan.routes.scan import get_scan_workflow
from perfwatch.features.scan.services.scan.workflow import ScanWorkflow

ROUTES = "perfwatch.features.scan.routes.scan"
USER = "user-1"


@pytest.fixture
def workflow(db_session, artifacts, make_outcome):
    return ScanWorkflow(db_session, audit=lambda url, options: make_outcome(), artifacts=artifacts)


@pytest.fixture
def api(auth_client, test_app, workflow):
    test_app.dependency_overrides[get_scan_workflow] = lambda: workflow
    yield auth_client
    test_app.dependency_overrides.pop(get_scan_workflow, None)


@pytest.fixture
def stored(workflow):
    """One mobile+desktop submission for the test user."""
    return workflow.run_scan_request(USER, "https://example.com", ["mobile", "desktop"])


def queued_task(task_id="task-1"):
    task = MagicMock()
    task.delay.return_value = MagicMock(id=task_id)
    return task


def finished_task(value):
    result = MagicMock(state="SUCCESS", result=value)
    result.successful.return_value = True
    result.failed.return_value = False
    return result


class TestAuth:
    def test_requests_without_user_are_rejected(self, client):
        response = client.get("/api/v1/scans")

        assert response.status_code == 401
        assert response.json()["status"] == "error"


class TestStartScan:
    def test_queues_scan_task(self, api):
        task = queued_task()
        with patch(f"{ROUTES}.run_scan_task", task):
            response = api.post("/api/v1/scans", json={
                "url": "  https://example.com ",
                "form_factors": ["mobile", "desktop"],
            })

        assert response.status_code == 202
        assert response.json()["data"] == {"task_id": "task-1", "status": "queued"}
        task.delay.assert_called_once_with(USER, "https://example.com", ["mobile", "desktop"], None)

    @pytest.mark.parametrize("url", ["", "ftp://example.com", "example.com", "https://"])
    def test_rejects_invalid_urls(self, api, url):
        task = queued_task()
        with patch(f"{ROUTES}.run_scan_task", task):
            response = api.post("/api/v1/scans", json={"url": url})

        assert response.status_code == 400
        task.delay.assert_not_called()

    def test_rejects_empty_device_list(self, api):
        with patch(f"{ROUTES}.run_scan_task", queued_task()):
            response = api.post("/api/v1/scans", json={"url": "https://example.com", "form_factors": []})
        assert response.status_code == 400

    def test_rejects_unknown_device(self, api):
        response = api.post("/api/v1/scans", json={"url": "https://example.com", "form_factors": ["tv"]})
        assert response.status_code == 422

    def test_task_status(self, api):
        response = api.get("/api/v1/scans/tasks/unknown-task")

        assert response.status_code == 200
        assert response.json()["data"]["state"] == "PENDING"

    def test_finished_task_of_another_user_is_hidden(self, api):
        result = finished_task({"status": "completed", "scan_ids": ["scan-9"], "user_id": "user-2"})
        with patch(f"{ROUTES}.AsyncResult", return_value=result):
            response = api.get("/api/v1/scans/tasks/task-9")

        assert response.status_code == 404
        assert "scan-9" not in response.text

    def test_finished_task_of_owner(self, api):
        result = finished_task({"status": "desktop_failed", "scan_ids": ["scan-1"], "user_id": USER})
        with patch(f"{ROUTES}.AsyncResult", return_value=result):
            response = api.get("/api/v1/scans/tasks/task-1")

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["state"] == "SUCCESS"
        assert data["result"]["status"] == "desktop_failed"

    def test_failed_task_is_checked_against_its_arguments(self, api):
        result = MagicMock(state="FAILURE", result=RuntimeError("https://secret.example.com unreachable"))
        result.successful.return_value = False
        result.failed.return_value = True
        result.args = ["user-2", "https://secret.example.com", ["mobile"]]
        with patch(f"{ROUTES}.AsyncResult", return_value=result):
            response = api.get("/api/v1/scans/tasks/task-3")

        assert response.status_code == 404
        assert "secret.example.com" not in response.text


class TestReadScans:
    def test_history(self, api, stored):
        response = api.get("/api/v1/scans")

        body = response.json()
        assert response.status_code == 200
        assert body["meta"]["total_count"] == 1
        assert len(body["data"]) == 1
        assert {item["id"] for item in body["data"][0]} == set(stored.scan_ids)

    def test_scan_detail_with_group(self, api, stored):
        response = api.get(f"/api/v1/scans/{stored.scan_ids[0]}")

        data = response.json()["data"]
        assert data["scan"]["has_screenshot"] is True
        assert data["scan"]["summary"]["categories"]["performance"] == 90
        assert len(data["group"]) == 2

    def test_unknown_scan(self, api):
        assert api.get("/api/v1/scans/missing").status_code == 404

    def test_raw_report(self, api, stored):
        response = api.get(f"/api/v1/scans/{stored.scan_ids[0]}/json")

        assert response.headers["content-type"].startswith("application/json")
        assert response.json()["finalUrl"] == "https://example.com/"

    def test_screenshot(self, api, stored):
        response = api.get(f"/api/v1/scans/{stored.scan_ids[0]}/screenshot")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/webp"
        assert response.content == b"img"

    def test_filmstrip(self, api, stored):
        response = api.get(f"/api/v1/scans/{stored.scan_ids[1]}/filmstrip")

        frames = response.json()["data"]["frames"]
        assert len(frames) == 3
        assert frames[0]["timing"] == 100

    def test_trends_and_export(self, api, stored):
        trends = api.get("/api/v1/scans/trends", params={"url": "https://example.com"}).json()["data"]
        assert trends["urls"] == ["https://example.com"]
        assert {p["form_factor"] for p in trends["points"]} == {"mobile", "desktop"}

        exported = api.get("/api/v1/scans/export").json()["data"]["scans"]
        assert len(exported) == 2


class TestModifyScans:
    def test_rescan_queues_task(self, api, stored):
        task = queued_task("task-2")
        with patch(f"{ROUTES}.rescan_task", task):
            response = api.post(f"/api/v1/scans/{stored.scan_ids[0]}/rescan")

        assert response.status_code == 202
        task.delay.assert_called_once_with(USER, stored.scan_ids[0])

    def test_rescan_group_requires_existing_group(self, api, stored):
        task = queued_task()
        with patch(f"{ROUTES}.rescan_group_task", task):
            assert api.post("/api/v1/scans/rescan-group", json={"run_id": "nope"}).status_code == 404
            response = api.post("/api/v1/scans/rescan-group", json={"run_id": stored.run_id})

        assert response.status_code == 202
        task.delay.assert_called_once_with(USER, stored.run_id)

    def test_delete_and_batch_delete(self, api, stored):
        assert api.delete(f"/api/v1/scans/{stored.scan_ids[0]}").status_code == 200
        assert api.get(f"/api/v1/scans/{stored.scan_ids[0]}").status_code == 404

        response = api.post("/api/v1/scans/delete-batch", json={"ids": stored.scan_ids})
        assert response.json()["data"] == {"deleted": 1}


class TestSharing:
    def test_share_and_public_access(self, api, stored):
        token = api.post(f"/api/v1/scans/{stored.scan_ids[0]}/share").json()["data"]["share_token"]

        shared = api.get(f"/api/v1/share/{token}").json()["data"]
        assert shared["url"] == "https://example.com"
        assert shared["has_screenshot"] is True
        assert "report_json" not in shared
        assert api.get(f"/api/v1/share/{token}/screenshot").content == b"img"
        assert len(api.get(f"/api/v1/share/{token}/filmstrip").json()["data"]["frames"]) == 3

        api.post(f"/api/v1/scans/{stored.scan_ids[0]}/unshare")
        assert api.get(f"/api/v1/share/{token}").status_code == 404
