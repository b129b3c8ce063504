"""
Kernel boundary tests.

1. signing_kernel/** may NOT import signing_services, signing_config or
   scripts.  The kernel never depends upward; outer layers pass plain
   values (ttl, attempt ceiling, number prefix) into kernel constructors.

2. signing_kernel/domain/** is pure: no SQLAlchemy and no imports from
   the kernel's db, models, services or selectors packages.

3. signing_config/** may NOT import signing_services or scripts.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module and node.level == 0:
                results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:

    def test_kernel_sources_found(self):
        assert _python_files("signing_kernel")

    def test_kernel_does_not_import_outer_layers(self):
        violations = _violations("signing_kernel", ("signing_services", "signing_config", "scripts"))
        assert violations == [], "\n".join(violations)


class TestKernelDomainPurity:

    def test_domain_has_no_persistence_imports(self):
        forbidden = (
            "sqlalchemy",
            "signing_kernel.db",
            "signing_kernel.models",
            "signing_kernel.services",
            "signing_kernel.selectors",
        )
        violations = _violations("signing_kernel/domain", forbidden)
        assert violations == [], "\n".join(violations)


class TestConfigBoundary:

    def test_config_does_not_import_services(self):
        violations = _violations("signing_config", ("signing_services", "scripts"))
        assert violations == [], "\n".join(violations)
