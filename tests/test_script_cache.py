"""Tests for the per-slot script cache: source selection, fail-fast loading, reload."""

import pytest

from scripted_connector.cache import ScriptCache
from scripted_connector.config import SCRIPT_SLOTS, ScriptedConfiguration
from scripted_connector.errors import ConfigurationError


def _cache(**config) -> ScriptCache:
    cache = ScriptCache(ScriptedConfiguration(**config))
    cache.load_all()
    return cache


def test_unconfigured_slots_are_empty():
    cache = _cache()
    for slot in SCRIPT_SLOTS:
        assert cache.ensure(slot) is None


def test_blank_inline_source_is_empty():
    assert _cache(create_script="  \n ").ensure("create") is None


def test_inline_source_compiled():
    cache = _cache(create_script="'u-' + id")
    assert cache.ensure("create").execute({"id": "7"}) == "u-7"


def test_file_wins_over_inline(tmp_path):
    script = tmp_path / "create.py"
    script.write_text("'from-file'")
    cache = _cache(create_script="'inline'", create_script_file_name=str(script))
    assert cache.ensure("create").execute({}) == "from-file"


def test_empty_file_is_empty_slot(tmp_path):
    script = tmp_path / "delete.py"
    script.write_text("")
    assert _cache(delete_script_file_name=str(script)).ensure("delete") is None


def test_file_name_placeholders_resolved(tmp_path, monkeypatch):
    (tmp_path / "search.py").write_text("[]")
    monkeypatch.setenv("SC_CACHE_DIR", str(tmp_path))
    cache = _cache(search_script_file_name="${SC_CACHE_DIR}/search.py")
    assert cache.ensure("search").execute({}) == []


def test_missing_file_fails_fast(tmp_path):
    with pytest.raises(ConfigurationError, match="Cannot read sync script"):
        _cache(sync_script_file_name=str(tmp_path / "missing.py"))


def test_compile_error_fails_fast():
    with pytest.raises(ConfigurationError, match="Cannot compile script"):
        _cache(update_script="if True print('x')")


def test_slots_load_independently():
    cache = ScriptCache(ScriptedConfiguration(create_script="'ok'", update_script="def ("))
    assert cache.load("create").execute({}) == "ok"
    with pytest.raises(ConfigurationError):
        cache.load("update")
    assert cache.ensure("create").execute({}) == "ok"


def test_unknown_slot():
    with pytest.raises(KeyError):
        _cache().ensure("modify")


def test_reload_recompiles_from_disk(tmp_path):
    script = tmp_path / "test.py"
    script.write_text("'v1'")
    cache = _cache(test_script_file_name=str(script))
    first = cache.ensure("test")

    script.write_text("'v2'")
    assert cache.ensure("test").execute({}) == "v1"
    reloaded = cache.ensure("test", force_reload=True)
    assert reloaded.execute({}) == "v2"
    assert reloaded is not first
    # A handle taken before the reload keeps working
    assert first.execute({}) == "v1"


def test_clear():
    cache = _cache(create_script="'u-1'")
    cache.clear()
    assert cache.ensure("create") is None


def test_unknown_language_rejected_on_construction():
    with pytest.raises(ConfigurationError, match="Unsupported scripting language"):
        ScriptCache(ScriptedConfiguration(scripting_language="groovy"))
