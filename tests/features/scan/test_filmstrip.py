import copy

from perfwatch.features.scan.services.audit.filmstrip import (
    FILMSTRIP_AUDIT_ID,
    FILMSTRIP_MAX_FRAMES,
    extract_filmstrip,
    strip_filmstrip,
)


class TestExtractFilmstrip:
    def test_extracts_frames_and_chrome_version(self, make_lhr):
        payload = extract_filmstrip(make_lhr(frames=3))

        assert [f.timing for f in payload.frames] == [100, 200, 300]
        assert payload.frames[0].data == "data:image/jpeg;base64,frame0"
        assert payload.chrome_version == "120.0.6099.109"

    def test_caps_at_max_frames(self, make_lhr):
        payload = extract_filmstrip(make_lhr(frames=40))
        assert len(payload.frames) == FILMSTRIP_MAX_FRAMES

    def test_frames_without_data_are_dropped_after_the_cap(self, make_lhr):
        lhr = make_lhr(frames=30)
        items = lhr["audits"][FILMSTRIP_AUDIT_ID]["details"]["items"]
        items[0]["data"] = ""
        del items[1]["data"]

        payload = extract_filmstrip(lhr)

        # the cut-off is applied to raw items, so later frames do not move up
        assert len(payload.frames) == FILMSTRIP_MAX_FRAMES - 2
        assert payload.frames[0].timing == 300

    def test_missing_or_wrong_type_gives_none(self, make_lhr):
        assert extract_filmstrip({"audits": {}}) is None
        assert extract_filmstrip({}) is None
        assert extract_filmstrip(make_lhr(frames=0)) is None

        lhr = make_lhr()
        lhr["audits"][FILMSTRIP_AUDIT_ID]["details"]["type"] = "table"
        assert extract_filmstrip(lhr) is None

    def test_all_frames_empty_gives_none(self, make_lhr):
        lhr = make_lhr(frames=2)
        for item in lhr["audits"][FILMSTRIP_AUDIT_ID]["details"]["items"]:
            item["data"] = None
        assert extract_filmstrip(lhr) is None


class TestStripFilmstrip:
    def test_empties_items_and_keeps_everything_else(self, make_lhr):
        lhr = make_lhr(frames=5)

        stripped = strip_filmstrip(lhr)

        details = stripped["audits"][FILMSTRIP_AUDIT_ID]["details"]
        assert details["items"] == []
        assert details["type"] == "filmstrip"
        assert stripped["categories"] == lhr["categories"]
        assert stripped["audits"]["speed-index"] == lhr["audits"]["speed-index"]

    def test_input_is_not_modified(self, make_lhr):
        lhr = make_lhr(frames=5)
        before = copy.deepcopy(lhr)

        strip_filmstrip(lhr)

        assert lhr == before
        assert extract_filmstrip(lhr) is not None

    def test_stripped_report_has_no_filmstrip(self, make_lhr):
        assert extract_filmstrip(strip_filmstrip(make_lhr())) is None

    def test_report_without_filmstrip_is_returned_as_is(self):
        lhr = {"audits": {"speed-index": {"numericValue": 1}}}
        assert strip_filmstrip(lhr) is lhr
