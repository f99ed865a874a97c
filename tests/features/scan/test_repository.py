import pytest

from perfwatch.features.scan.services.scan.repository import ScanRepository, escape_like

USER = "user-1"
OTHER = "user-2"


@pytest.fixture
def repository(db_session):
    return ScanRepository(db_session)


def create(repository, url="https://example.com", user_id=USER, run_id=None, form_factor="mobile"):
    return repository.create_scan(
        user_id,
        url,
        {"form_factor": form_factor, "categories": None},
        '{"audits":{}}',
        {"categories": {"performance": 80}},
        run_id,
    )


def test_escape_like():
    assert escape_like("100%_done\\") == "100\\%\\_done\\\\"


class TestScanRepository:
    def test_create_and_get_is_owner_scoped(self, repository):
        scan_id = create(repository)

        scan = repository.get_scan(scan_id, USER)
        assert scan.url == "https://example.com"
        assert scan.summary == {"categories": {"performance": 80}}
        assert scan.created_at is not None
        assert repository.get_scan(scan_id, OTHER) is None

    def test_screenshot_and_share_token_updates(self, repository):
        scan_id = create(repository)

        repository.update_scan_screenshot(scan_id, f"{scan_id}.webp")
        assert repository.update_share_token(scan_id, USER, "  tok  ") is True
        assert repository.update_share_token(scan_id, OTHER, "stolen") is False

        repository.db.expire_all()
        scan = repository.get_scan(scan_id, USER)
        assert scan.screenshot_path == f"{scan_id}.webp"
        assert scan.share_token == "tok"
        assert repository.get_scan_by_share_token("tok").id == scan_id
        assert repository.get_scan_by_share_token("  ") is None

    def test_run_group(self, repository):
        mobile = create(repository, run_id="run-1", form_factor="mobile")
        desktop = create(repository, run_id="run-1", form_factor="desktop")
        create(repository, run_id="run-1", user_id=OTHER)

        group = repository.get_scans_by_run_id("run-1", USER)

        assert {s.id for s in group} == {mobile, desktop}
        assert repository.get_scans_by_run_id("", USER) == []

    def test_search_matches_literally(self, repository):
        create(repository, url="https://shop.example.com/100%_off")
        create(repository, url="https://shop.example.com/1000-off")

        assert len(repository.list_scans(USER, search="100%_")) == 1
        assert len(repository.list_scans(USER, search="shop")) == 2
        assert repository.count_scan_groups(USER, search="100%_") == 1

    def test_groups_count_once(self, repository):
        create(repository, run_id="run-1")
        create(repository, run_id="run-1", form_factor="desktop")
        create(repository)

        assert repository.count_scan_groups(USER) == 2
        assert repository.count_scan_groups(OTHER) == 0

    def test_delete_is_owner_scoped(self, repository):
        mine = create(repository)
        theirs = create(repository, user_id=OTHER)

        assert repository.delete_scan(theirs, USER) is False
        assert repository.delete_scans(USER, [mine, theirs]) == 1
        assert repository.get_scan(theirs, OTHER) is not None
        assert repository.delete_scans(USER, []) == 0

    def test_urls_and_trend_scans(self, repository):
        create(repository, url="https://b.example.com")
        create(repository, url="https://a.example.com")
        create(repository, url="https://a.example.com")

        assert repository.get_distinct_urls(USER) == ["https://a.example.com", "https://b.example.com"]
        assert len(repository.get_scans_for_url(USER, "https://a.example.com")) == 2
        assert len(repository.get_scans_for_export(USER)) == 3
