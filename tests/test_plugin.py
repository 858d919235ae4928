"""
Test summarizer plugin loading.
"""
import pytest

from repodigest.summarize.plugin import PluginError, load_summarizer_plugin


def test_load_from_relative_path(tmp_path):
    """A module-level hook in a .py file is returned."""
    (tmp_path / "summarizer.py").write_text(
        "def summarize_work_unit(unit):\n    return [unit.title.upper()]\n",
        encoding="utf-8",
    )
    hook = load_summarizer_plugin("./summarizer.py", cwd=tmp_path)
    assert hook.__name__ == "summarize_work_unit"


def test_load_plugin_object(tmp_path):
    """A `plugin` object with the hook method is accepted."""
    (tmp_path / "obj_plugin.py").write_text(
        "class _Plugin:\n"
        "    def summarize_work_unit(self, unit):\n"
        "        return ['from object']\n"
        "plugin = _Plugin()\n",
        encoding="utf-8",
    )
    hook = load_summarizer_plugin(str(tmp_path / "obj_plugin.py"))
    assert hook(None) == ["from object"]


def test_load_by_module_name(tmp_path, monkeypatch):
    """Importable module names go through the import system."""
    (tmp_path / "named_summarizer_plugin.py").write_text(
        "def summarize_work_unit(unit):\n    return ['named']\n",
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    assert load_summarizer_plugin("named_summarizer_plugin")(None) == ["named"]


def test_missing_hook(tmp_path):
    (tmp_path / "empty.py").write_text("VALUE = 1\n", encoding="utf-8")
    with pytest.raises(PluginError, match="must define"):
        load_summarizer_plugin("empty.py", cwd=tmp_path)


def test_missing_file(tmp_path):
    with pytest.raises(PluginError, match="not found"):
        load_summarizer_plugin("./nope.py", cwd=tmp_path)


def test_import_failure(tmp_path):
    """Errors raised while importing are wrapped."""
    (tmp_path / "broken.py").write_text("raise RuntimeError('boom')\n", encoding="utf-8")
    with pytest.raises(PluginError, match="boom"):
        load_summarizer_plugin("broken.py", cwd=tmp_path)


def test_unknown_module():
    with pytest.raises(PluginError, match="failed to import"):
        load_summarizer_plugin("repodigest_no_such_plugin_module")


def test_empty_specifier():
    with pytest.raises(PluginError, match="empty"):
        load_summarizer_plugin("  ")
