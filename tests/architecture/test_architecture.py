# tests/architecture/test_architecture.py
# Architecture tests enforcing layering rules.
# - routers must not talk to Redis, S3 or Pillow directly
# - services must not depend on the web framework
# - the field projector and share state planner stay pure (no I/O libraries)

import ast
import pathlib
import pytest  # type: ignore[import-not-found]

REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
PACKAGE = REPO_ROOT / "guitarshare"

INFRA_LIBS = {"redis", "boto3", "botocore", "PIL"}


def _iter_py_files(root: pathlib.Path):
    for path in root.rglob("*.py"):
        # skip virtualenv & build outputs
        parts = {"venv", ".venv", "node_modules", "__pycache__"}
        if any(part in parts for part in path.parts):
            continue
        yield path


def _collect_imports(py_path: pathlib.Path) -> set[str]:
    """Return set of imported top-level module names from file."""
    try:
        src = py_path.read_text(encoding="utf-8")
    except Exception:
        return set()
    try:
        tree = ast.parse(src, filename=str(py_path))
    except SyntaxError:
        return set()
    imports: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                imports.add(alias.name.split(".")[0])
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                imports.add(node.module.split(".")[0])
    return imports


def _collect_full_imports(py_path: pathlib.Path) -> set[str]:
    """Return dotted module names imported by the file."""
    tree = ast.parse(py_path.read_text(encoding="utf-8"), filename=str(py_path))
    names: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            names.add(node.module)
    return names


# ---------- Tests ----------

@pytest.mark.architecture
def test_routers_do_not_import_storage_libraries():
    offenders: list[str] = []
    for f in _iter_py_files(PACKAGE / "routers"):
        bad = _collect_imports(f) & INFRA_LIBS
        if bad:
            offenders.append(f"{f}: {sorted(bad)}")
    assert not offenders, "Routers must go through services; offending files:\n" + "\n".join(offenders)


@pytest.mark.architecture
def test_services_do_not_import_web_framework():
    for f in _iter_py_files(PACKAGE / "services"):
        imports = _collect_imports(f)
        assert "fastapi" not in imports, f"services must not depend on fastapi: {f}"
        assert "starlette" not in imports, f"services must not depend on starlette: {f}"


@pytest.mark.architecture
@pytest.mark.parametrize("module", ["field_projector.py", "share_state.py"])
def test_pure_modules_have_no_io_dependencies(module):
    path = PACKAGE / "services" / module
    imports = _collect_full_imports(path)
    assert not (_collect_imports(path) & INFRA_LIBS), f"{module} must not import I/O libraries"
    assert not any(
        name.startswith(("guitarshare.repositories", "guitarshare.storage", "guitarshare.db"))
        for name in imports
    ), f"{module} must not import repositories or storage"
