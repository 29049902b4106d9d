"""Tests for translating search script rows into connector objects.

Covers paging cookie extraction at any position, early termination by the
handler, reserved keys, and attribute value wrapping.
"""

import logging

import pytest

from scripted_connector.objects import ConnectorObject, ObjectClass, SearchResult
from scripted_connector.results import build_object, process_results

ACCOUNT = ObjectClass.ACCOUNT


class RecordingHandler:
    """Collects objects; declines further objects after ``stop_after`` deliveries."""

    def __init__(self, stop_after=None):
        self.objects = []
        self.results = []
        self.stop_after = stop_after

    def handle(self, obj):
        self.objects.append(obj)
        return self.stop_after is None or len(self.objects) < self.stop_after

    def handle_result(self, result):
        self.results.append(result)


def _row(uid, name=None, **attrs):
    row = {"__UID__": uid, "__NAME__": name or f"user{uid}"}
    row.update(attrs)
    return row


COOKIE = {"PAGED_RESULTS_COOKIE": "page-2"}


class TestCookie:

    @pytest.mark.parametrize("rows", [
        [COOKIE, _row("1"), _row("2")],
        [_row("1"), COOKIE, _row("2")],
        [_row("1"), _row("2"), COOKIE],
    ], ids=["first", "middle", "last"])
    def test_cookie_found_at_any_position(self, rows):
        handler = RecordingHandler()
        assert process_results(ACCOUNT, rows, handler) == "page-2"
        assert handler.results == [SearchResult("page-2", -1)]
        assert [o.uid.value for o in handler.objects] == ["1", "2"]

    def test_no_cookie(self):
        handler = RecordingHandler()
        assert process_results(ACCOUNT, [_row("1")], handler) is None
        assert handler.results == [SearchResult(None, -1)]

    def test_cookie_key_is_case_insensitive(self):
        handler = RecordingHandler()
        assert process_results(ACCOUNT, [{"paged_results_cookie": "c"}], handler) == "c"
        assert handler.objects == []

    def test_last_non_null_cookie_wins(self):
        rows = [
            {"PAGED_RESULTS_COOKIE": "a"},
            {"PAGED_RESULTS_COOKIE": "b"},
            {"PAGED_RESULTS_COOKIE": None},
        ]
        assert process_results(ACCOUNT, rows, RecordingHandler()) == "b"

    def test_cookie_rendered_as_text(self):
        assert process_results(ACCOUNT, [{"PAGED_RESULTS_COOKIE": 40}], RecordingHandler()) == "40"

    def test_cookie_key_with_other_keys_is_an_object(self):
        handler = RecordingHandler()
        rows = [_row("1", PAGED_RESULTS_COOKIE="x")]
        assert process_results(ACCOUNT, rows, handler) is None
        assert handler.objects[0].get_attribute("PAGED_RESULTS_COOKIE").values == ("x",)


class TestEarlyTermination:

    def test_declining_handler_still_gets_cookie(self):
        handler = RecordingHandler(stop_after=1)
        rows = [_row("1"), _row("2"), _row("3"), COOKIE]
        assert process_results(ACCOUNT, rows, handler) == "page-2"
        assert [o.uid.value for o in handler.objects] == ["1"]
        assert handler.results == [SearchResult("page-2", -1)]

    def test_rows_after_decline_are_not_built(self):
        handler = RecordingHandler(stop_after=1)
        # The second row would fail to build if it were translated
        rows = [_row("1"), {"__UID__": None, "__NAME__": "broken"}]
        process_results(ACCOUNT, rows, handler)
        assert len(handler.objects) == 1


class TestObjects:

    def test_reserved_keys(self):
        obj = build_object(ACCOUNT, {"__uid__": 42, "__Name__": "alice", "mail": "a@x"})
        assert obj.uid.value == "42"
        assert obj.name.value == "alice"
        assert obj.get_attribute("mail").values == ("a@x",)
        assert obj.object_class == ACCOUNT

    def test_value_wrapping(self):
        obj = build_object(ACCOUNT, _row("1", mail=["a@x", "b@x"], title="Eng", manager=None))
        assert obj.get_attribute("mail").values == ("a@x", "b@x")
        assert obj.get_attribute("title").values == ("Eng",)
        assert obj.get_attribute("manager").values == ()

    @pytest.mark.parametrize("key", ["password", "PASSWORD", "Password"])
    def test_password_dropped(self, key):
        obj = build_object(ACCOUNT, _row("1", **{key: "s3cret"}))
        assert obj.get_attribute("password") is None

    def test_null_uid_is_an_error(self):
        with pytest.raises(ValueError, match="Uid cannot be null"):
            build_object(ACCOUNT, {"__UID__": None, "__NAME__": "alice"})

    def test_null_name_is_an_error(self):
        with pytest.raises(ValueError, match="Name cannot be null"):
            build_object(ACCOUNT, {"__UID__": "1", "__NAME__": None})

    def test_missing_name_is_an_error(self):
        with pytest.raises(ValueError, match="must contain a Name"):
            build_object(ACCOUNT, {"__UID__": "1"})

    def test_objects_delivered_before_a_bad_row_are_kept(self):
        handler = RecordingHandler()
        with pytest.raises(ValueError):
            process_results(ACCOUNT, [_row("1"), {"__UID__": None}], handler)
        assert [o.uid.value for o in handler.objects] == ["1"]


class TestHandlers:

    def test_plain_callable(self):
        seen = []

        def handle(obj):
            seen.append(obj)
            return True

        process_results(ACCOUNT, [_row("1"), _row("2")], handle)
        assert len(seen) == 2

    def test_cookie_without_summary_callback_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="scripted_connector.results"):
            cookie = process_results(ACCOUNT, [COOKIE], lambda obj: True)
        assert cookie == "page-2"
        assert "page-2" in caplog.text

    def test_non_handler_rejected(self):
        with pytest.raises(TypeError, match="is not a result handler"):
            process_results(ACCOUNT, [_row("1")], object())

    def test_translation_is_repeatable(self):
        rows = [_row("1", mail=["a@x"]), COOKIE, _row("2", title=None)]
        first, second = RecordingHandler(), RecordingHandler()
        process_results(ACCOUNT, rows, first)
        process_results(ACCOUNT, rows, second)
        assert first.objects == second.objects
        assert first.results == second.results
        assert all(isinstance(o, ConnectorObject) for o in first.objects)
