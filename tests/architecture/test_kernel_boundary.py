"""
Kernel boundary and invariants contract.

1. stock_kernel/** may NOT import stock_engines, stock_services or
   stock_config.  The kernel never depends upward.
2. stock_engines/** is pure: it may NOT import stock_services,
   stock_config, SQLAlchemy, or the kernel's db/models/services/selectors.
3. stock_config/** may NOT import stock_services or stock_engines.
4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST -- they cannot break anything.
"""

import ast
from pathlib import Path

from stock_kernel.invariants import (
    ALL_STOCK_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    StockInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(
                        f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'"
                    )
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    def test_packages_exist(self):
        for package in ("stock_kernel", "stock_engines", "stock_services", "stock_config"):
            assert _python_files(package), f"{package} has no modules"

    def test_kernel_does_not_import_outer_layers(self):
        violations = _violations("stock_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation: stock_kernel/** must not import "
            "engines, services or config:\n" + "\n".join(violations)
        )


class TestEnginePurity:
    FORBIDDEN = (
        "stock_services",
        "stock_config",
        "sqlalchemy",
        "stock_kernel.db",
        "stock_kernel.models",
        "stock_kernel.services",
        "stock_kernel.selectors",
    )

    def test_engines_do_no_io(self):
        violations = _violations("stock_engines", self.FORBIDDEN)
        assert not violations, (
            "Engine purity violation: stock_engines/** must not touch the "
            "store or outer layers:\n" + "\n".join(violations)
        )


class TestConfigBoundary:
    def test_config_does_not_import_services_or_engines(self):
        violations = _violations("stock_config", ("stock_services", "stock_engines"))
        assert not violations, "\n".join(violations)


class TestInvariantsContract:
    def test_invariants_declared(self):
        assert ALL_STOCK_INVARIANTS == frozenset(StockInvariant)
        assert StockInvariant.NO_DOUBLE_ALLOCATION in ALL_STOCK_INVARIANTS
        assert StockInvariant.WEIGHT_CONSERVATION in ALL_STOCK_INVARIANTS
        assert len(ALL_STOCK_INVARIANTS) == 8

    def test_every_invariant_documents_its_enforcement(self):
        source = (ROOT / "stock_kernel" / "invariants.py").read_text()
        tree = ast.parse(source)
        (enum_class,) = [
            n for n in tree.body if isinstance(n, ast.ClassDef) and n.name == "StockInvariant"
        ]
        body = enum_class.body
        for i, node in enumerate(body):
            if isinstance(node, ast.Assign):
                following = body[i + 1] if i + 1 < len(body) else None
                assert isinstance(following, ast.Expr) and isinstance(
                    following.value, ast.Constant
                ), f"{node.targets[0].id} has no docstring"
