"""Tests to verify hexagonal architecture structure."""

import ast
from pathlib import Path

import pytest

# Compute project root relative to this test file
PROJECT_ROOT = Path(__file__).parent.parent.parent


@pytest.fixture
def package_path() -> Path:
    """Return the push_dispatch package path."""
    return PROJECT_ROOT / "push_dispatch"


def _imported_modules(py_file: Path) -> list[str]:
    tree = ast.parse(py_file.read_text())
    modules: list[str] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom) and node.module:
            modules.append(node.module)
        elif isinstance(node, ast.Import):
            modules.extend(alias.name for alias in node.names)
    return modules


def _violations(files: list[Path], forbidden: tuple[str, ...]) -> list[str]:
    return [
        f"{py_file}: {module}"
        for py_file in files
        for module in _imported_modules(py_file)
        if module.startswith(forbidden)
    ]


def test_main_layers_exist(package_path: Path) -> None:
    """Verify all main layer directories exist."""
    layers = ["domain", "application", "infrastructure", "config", "bootstrap", "workers"]
    for layer in layers:
        assert (package_path / layer).is_dir(), f"Missing layer: {layer}"
        assert (package_path / layer / "__init__.py").is_file(), (
            f"Missing {layer}/__init__.py"
        )


def test_domain_imports_no_outer_layer(package_path: Path) -> None:
    """Domain is the innermost layer and imports nothing from the others."""
    files = list((package_path / "domain").rglob("*.py"))
    forbidden = (
        "push_dispatch.application",
        "push_dispatch.infrastructure",
        "push_dispatch.config",
        "push_dispatch.bootstrap",
        "push_dispatch.workers",
    )

    assert _violations(files, forbidden) == []


def test_domain_has_no_io_libraries(package_path: Path) -> None:
    """Domain code never talks to databases, queues or the network."""
    files = list((package_path / "domain").rglob("*.py"))
    forbidden = ("sqlalchemy", "asyncpg", "redis", "httpx")

    assert _violations(files, forbidden) == []


def test_application_imports_no_adapters(package_path: Path) -> None:
    """Application services depend on ports, never on concrete adapters."""
    files = list((package_path / "application").rglob("*.py"))
    forbidden = (
        "push_dispatch.infrastructure",
        "push_dispatch.bootstrap",
        "push_dispatch.workers",
        "sqlalchemy",
        "redis",
        "httpx",
    )

    assert _violations(files, forbidden) == []


def test_infrastructure_does_not_import_bootstrap(package_path: Path) -> None:
    """Wiring happens in bootstrap; adapters never reach back into it."""
    files = list((package_path / "infrastructure").rglob("*.py"))

    assert _violations(files, ("push_dispatch.bootstrap", "push_dispatch.workers")) == []
