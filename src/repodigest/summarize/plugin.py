"""
Loading user-supplied summarizer plugins.

A plugin is either an importable module name or a path to a `.py` file. It
must define `summarize_work_unit(unit)` at module level, or expose a module
level `plugin` object with that method.
"""
import importlib
import importlib.util
from pathlib import Path
from typing import Union

import structlog

from repodigest.summarize.degrade import SummarizerHook

logger = structlog.get_logger()

HOOK_NAME = "summarize_work_unit"


class PluginError(ValueError):
    """Raised when a summarizer plugin cannot be loaded."""


def _is_path_specifier(specifier: str) -> bool:
    return (
        specifier.startswith((".", "/", "~"))
        or specifier.endswith(".py")
        or (len(specifier) > 2 and specifier[1] == ":" and specifier[2] in "\\/")
    )


def _import_from_path(path: Path):
    if not path.is_file():
        raise PluginError(f"Summarizer plugin file not found: {path}")

    module_name = f"repodigest_plugin_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise PluginError(f"Cannot import summarizer plugin from {path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise PluginError(f"Summarizer plugin {path} failed to import: {e}") from e
    return module


def load_summarizer_plugin(specifier: str, cwd: Union[str, Path, None] = None) -> SummarizerHook:
    """
    Import a summarizer plugin and return its hook.

    Args:
        specifier: Module name, or file path resolved against cwd
        cwd: Base directory for relative paths (defaults to the process cwd)

    Raises:
        PluginError: If the plugin cannot be imported or defines no hook
    """
    specifier = (specifier or "").strip()
    if not specifier:
        raise PluginError("Summarizer plugin specifier is empty")

    if _is_path_specifier(specifier):
        base = Path(cwd) if cwd is not None else Path.cwd()
        module = _import_from_path((base / Path(specifier).expanduser()).resolve())
    else:
        try:
            module = importlib.import_module(specifier)
        except Exception as e:
            raise PluginError(f"Summarizer plugin {specifier!r} failed to import: {e}") from e

    hook = getattr(module, HOOK_NAME, None)
    if callable(hook):
        logger.info("Summarizer plugin loaded", plugin=specifier, entry=HOOK_NAME)
        return hook

    plugin_obj = getattr(module, "plugin", None)
    hook = getattr(plugin_obj, HOOK_NAME, None)
    if callable(hook):
        logger.info("Summarizer plugin loaded", plugin=specifier, entry=f"plugin.{HOOK_NAME}")
        return hook

    raise PluginError(
        f"Plugin module must define `{HOOK_NAME}(unit)` or `plugin.{HOOK_NAME}(unit)`"
    )
