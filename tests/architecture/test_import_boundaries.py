"""
Import-boundary enforcement for the layered packages.

1. Engine purity      -- fleet_engines/** may not import DB, ORM, models,
                         services, selectors or config.
2. Engine no-impure   -- fleet_engines/** may not read the wall clock or
                         the environment.
3. Kernel direction   -- fleet_kernel/** may not import fleet_services or
                         fleet_config; selectors may not import services.
4. Config centralisation -- only fleet_config itself may import its
                         loader and schema sub-modules.

All scanning is done via AST; these tests are read-only.
"""

import ast
import glob
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[str]:
    """Return all .py files under *package*, sorted for deterministic order."""
    return sorted(glob.glob(f"{ROOT / package}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{Path(path).relative_to(ROOT)}:{lineno} imports {module}")
    return found


def test_packages_present():
    for package in ("fleet_kernel", "fleet_engines", "fleet_config", "fleet_services"):
        assert _python_files(package), f"{package} not found under {ROOT}"


class TestEnginePurity:
    FORBIDDEN = (
        "sqlalchemy",
        "fleet_kernel.db",
        "fleet_kernel.models",
        "fleet_kernel.services",
        "fleet_kernel.selectors",
        "fleet_config",
        "fleet_services",
    )

    def test_no_storage_or_service_imports(self):
        assert _violations("fleet_engines", self.FORBIDDEN) == []

    @pytest.mark.parametrize("call", ["datetime.now", "date.today", "os.environ", "time.time"])
    def test_no_impure_calls(self, call):
        receiver, attr = call.split(".")
        offenders = []
        for path in _python_files("fleet_engines"):
            tree = ast.parse(Path(path).read_text(), filename=path)
            for node in ast.walk(tree):
                if (
                    isinstance(node, ast.Attribute)
                    and isinstance(node.value, ast.Name)
                    and (node.value.id, node.attr) == (receiver, attr)
                ):
                    offenders.append(f"{path}:{node.lineno}")
        assert offenders == []


class TestKernelDirection:
    def test_kernel_does_not_import_outer_layers(self):
        assert _violations("fleet_kernel", ("fleet_services", "fleet_config")) == []

    def test_selectors_do_not_import_services(self):
        assert _violations("fleet_kernel/selectors", ("fleet_kernel.services",)) == []

    def test_domain_has_no_storage(self):
        forbidden = ("sqlalchemy", "fleet_kernel.db", "fleet_kernel.models")
        assert _violations("fleet_kernel/domain", forbidden) == []


class TestConfigCentralisation:
    def test_internal_modules_only_used_inside_config(self):
        internal = ("fleet_config.loader", "fleet_config.schema")
        offenders = []
        for package in ("fleet_kernel", "fleet_engines", "fleet_services"):
            offenders.extend(_violations(package, internal))
        assert offenders == []
