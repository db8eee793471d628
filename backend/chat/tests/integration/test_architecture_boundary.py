"""Architectural boundary tests enforcing layer dependency rules.

Layer dependency direction (allowed):
  server → session → messaging → shared
  client → messaging → shared

Forbidden (runtime imports):
  shared → chat
  messaging, session, client → server
  client → session
"""

import ast
from pathlib import Path

_BACKEND_ROOT = Path(__file__).resolve().parents[3]
_CHAT_ROOT = _BACKEND_ROOT / "chat"


def _collect_runtime_import_targets(source_dir: Path) -> list[tuple[str, int, str]]:
    """Parse all non-test .py files and return (filename, lineno, module) for runtime imports.

    Skip imports inside `if TYPE_CHECKING:` blocks; those are type-only
    and do not create runtime layer coupling.
    """
    results: list[tuple[str, int, str]] = []
    for py_file in source_dir.rglob("*.py"):
        if "tests" in py_file.relative_to(source_dir).parts:
            continue
        tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
        type_checking_ranges = _find_type_checking_ranges(tree)
        for node in ast.walk(tree):
            if not isinstance(node, (ast.Import, ast.ImportFrom)):
                continue
            if any(start <= node.lineno <= end for start, end in type_checking_ranges):
                continue
            if isinstance(node, ast.Import):
                results.extend((py_file.name, node.lineno, alias.name) for alias in node.names)
            elif node.module is not None:
                results.append((py_file.name, node.lineno, node.module))
    return results


def _find_type_checking_ranges(tree: ast.Module) -> list[tuple[int, int]]:
    """Find line ranges of `if TYPE_CHECKING:` blocks."""
    ranges: list[tuple[int, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.If) and isinstance(node.test, ast.Name) and node.test.id == "TYPE_CHECKING":
            start = node.lineno
            end = max(child.lineno for child in ast.walk(node) if hasattr(child, "lineno"))
            ranges.append((start, end))
    return ranges


def _violations(source_dir: Path, forbidden_prefix: str) -> list[str]:
    return [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(source_dir)
        if module == forbidden_prefix or module.startswith(forbidden_prefix + ".")
    ]


def test_shared_does_not_import_chat():
    """shared is reusable by the admin scripts without pulling in the server."""
    violations = _violations(_BACKEND_ROOT / "shared", "chat")
    assert violations == [], f"shared imports from chat: {violations}"


def test_inner_layers_do_not_import_server():
    for package in ("messaging", "session", "client"):
        violations = _violations(_CHAT_ROOT / package, "chat.server")
        assert violations == [], f"chat.{package} imports from chat.server: {violations}"


def test_client_does_not_import_session():
    violations = _violations(_CHAT_ROOT / "client", "chat.session")
    assert violations == [], f"chat.client imports from chat.session: {violations}"
