from __future__ import annotations

import ast
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

REPO_ROOT = Path(__file__).resolve().parents[2]
PACKAGE = REPO_ROOT / "githooks"


def _iter_python_files(root: Path) -> Iterable[Path]:
    for path in root.rglob("*.py"):
        if path.is_file() and "__pycache__" not in path.parts:
            yield path


def _read_imports(path: Path) -> List[str]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    imports: List[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            imports.extend(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            imports.append(node.module)
    return imports


def _find_offenses(files: Sequence[Path], forbidden_prefixes: Sequence[str]) -> List[Tuple[Path, str]]:
    offenses: List[Tuple[Path, str]] = []
    for path in files:
        for module in _read_imports(path):
            if any(module == p or module.startswith(p + ".") for p in forbidden_prefixes):
                offenses.append((path, module))
    return offenses


def _format_offenses(label: str, offenses: List[Tuple[Path, str]]) -> str:
    lines = [f"{label} import violations:"]
    for path, module in sorted(offenses, key=lambda item: (str(item[0]), item[1])):
        lines.append(f"- {path.relative_to(REPO_ROOT)}: {module}")
    return "\n".join(lines)


def test_contracts_and_config_stay_at_the_bottom() -> None:
    files = [*_iter_python_files(PACKAGE / "contracts"), *_iter_python_files(PACKAGE / "config")]
    offenses = _find_offenses(
        files,
        ("githooks.orchestrator", "githooks.plugins", "githooks.repository", "githooks.governance", "githooks.gerrit"),
    )
    assert not offenses, _format_offenses("Contracts/config", offenses)


def test_library_code_does_not_import_the_cli() -> None:
    offenses = _find_offenses(list(_iter_python_files(PACKAGE)), ("gateway",))
    assert not offenses, _format_offenses("Library", offenses)


def test_plugins_do_not_reach_into_the_engine() -> None:
    offenses = _find_offenses(
        list(_iter_python_files(PACKAGE / "plugins")),
        ("githooks.orchestrator.engine", "githooks.orchestrator.externals", "githooks.orchestrator.preparers"),
    )
    assert not offenses, _format_offenses("Plugins", offenses)


def test_only_the_config_loader_reads_the_process_environment() -> None:
    offenders = [
        path.relative_to(REPO_ROOT)
        for path in _iter_python_files(PACKAGE)
        if "os.environ" in path.read_text(encoding="utf-8") and path != PACKAGE / "config" / "loader.py"
    ]
    assert not offenders, f"os.environ read outside config/loader.py: {offenders}"


def test_subprocesses_are_confined() -> None:
    allowed = {
        PACKAGE / "repository" / "facade.py",
        PACKAGE / "orchestrator" / "externals.py",
        PACKAGE / "orchestrator" / "context.py",
    }
    offenders = [
        path.relative_to(REPO_ROOT)
        for path in _iter_python_files(PACKAGE)
        if "subprocess" in _read_imports(path) and path not in allowed
    ]
    assert not offenders, f"subprocess imported outside the git facade and hook runners: {offenders}"
