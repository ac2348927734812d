import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

DOMAIN_CONFIGS = {
    "cache_admin": {
        "paths": [ROOT / "routers" / "cache_admin"],
        "allowed_prefixes": ["routers.cache_admin"],
    },
}


def _iter_python_files(paths):
    for base in paths:
        if not base.exists():
            continue
        for path in base.rglob("*.py"):
            if path.is_file():
                yield path


def _iter_imported_modules(tree):
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield alias.name
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                yield node.module


def _is_cross_domain_import(module_name, allowed_prefixes):
    if not module_name.startswith("routers."):
        return False
    for prefix in allowed_prefixes:
        if module_name == prefix or module_name.startswith(prefix + "."):
            return False
    return True


def test_no_cross_domain_imports():
    violations = []
    for domain, config in DOMAIN_CONFIGS.items():
        for path in _iter_python_files(config["paths"]):
            tree = ast.parse(path.read_text(), filename=str(path))
            for module_name in _iter_imported_modules(tree):
                if _is_cross_domain_import(module_name, config["allowed_prefixes"]):
                    violations.append(f"{path}: {module_name} ({domain})")

    if violations:
        joined = "\n".join(sorted(violations))
        raise AssertionError(f"Cross-domain imports detected:\n{joined}")


def test_cache_core_does_not_depend_on_http_layer():
    """
    `core.cache` is used by every domain; it must not import routers or the
    FastAPI app, otherwise the dependency direction flips.
    """
    violations = []
    for path in _iter_python_files([ROOT / "core"]):
        tree = ast.parse(path.read_text(), filename=str(path))
        for module_name in _iter_imported_modules(tree):
            if module_name in ("main", "fastapi") or module_name.startswith(("routers", "fastapi.")):
                violations.append(f"{path}: {module_name}")

    if violations:
        joined = "\n".join(sorted(set(violations)))
        raise AssertionError("core imports the HTTP layer:\n" + joined)
