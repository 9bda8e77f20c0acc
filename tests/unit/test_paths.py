from journeyflow.utils.paths import get_path, is_missing, merge_data, set_path


def test_get_and_set_path():
    data = {"scenario": {"title": "T"}}
    assert get_path(data, "scenario.title") == "T"
    assert get_path(data, "scenario.missing", "fallback") == "fallback"
    assert get_path(data, "scenario.title.deeper") is None

    set_path(data, "planning.shots.count", 3)
    assert data["planning"] == {"shots": {"count": 3}}


def test_is_missing():
    for value in (None, "", [], {}, ()):
        assert is_missing(value)
    for value in (0, False, "x", [None]):
        assert not is_missing(value)


def test_merge_data_is_one_level_deep():
    data = {"video": {"job_ids": ["j1"], "status": "running"}}
    merge_data(data, {"video": {"status": "done"}, "locale": "en"})
    assert data == {"video": {"job_ids": ["j1"], "status": "done"}, "locale": "en"}
