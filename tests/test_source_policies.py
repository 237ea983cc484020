"""Static checks over the library sources: output goes through logging, not print."""

from __future__ import annotations

import ast
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[1] / "src" / "cmatune"
# The CLI is the only module that talks to the terminal directly.
TERMINAL_MODULES = {"experiment/cli.py"}
# Modules that address the package loggers by name rather than their own.
LOGGER_SETUP_MODULES = {"foundation/logging.py"}

LIBRARY_MODULES = sorted(path.relative_to(PACKAGE_ROOT).as_posix() for path in PACKAGE_ROOT.rglob("*.py"))


def _calls(module: str) -> list[ast.Call]:
    tree = ast.parse((PACKAGE_ROOT / module).read_text(encoding="utf-8"), filename=module)
    return [node for node in ast.walk(tree) if isinstance(node, ast.Call)]


def _dotted_name(func: ast.expr) -> str:
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return f"{_dotted_name(func.value)}.{func.attr}"
    return ""


def test_library_modules_found():
    assert "engine/cmaes/cmaes.py" in LIBRARY_MODULES
    assert TERMINAL_MODULES <= set(LIBRARY_MODULES)


@pytest.mark.parametrize("module", [m for m in LIBRARY_MODULES if m not in TERMINAL_MODULES])
def test_no_terminal_output(module):
    offending = [
        f"{module}:{call.lineno}"
        for call in _calls(module)
        if _dotted_name(call.func) in {"print", "pprint", "pprint.pprint", "sys.stdout.write", "sys.stderr.write"}
    ]
    assert offending == []


@pytest.mark.parametrize("module", LIBRARY_MODULES)
def test_never_configures_root_logging(module):
    assert not [call.lineno for call in _calls(module) if _dotted_name(call.func).endswith("basicConfig")]


@pytest.mark.parametrize("module", [m for m in LIBRARY_MODULES if m not in LOGGER_SETUP_MODULES])
def test_loggers_are_named_after_their_module(module):
    for call in _calls(module):
        if _dotted_name(call.func) != "logging.getLogger":
            continue
        assert len(call.args) == 1, f"{module}:{call.lineno}"
        argument = call.args[0]
        assert isinstance(argument, ast.Name) and argument.id == "__name__", f"{module}:{call.lineno}"
