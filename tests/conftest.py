# tests/conftest.py
"""
Shared source snippets, unit builders and fixtures for the propresolvers
test-suite.
"""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest

from propresolvers.host import Compilation, ReferencedSource, SourceUnit


# ═══════════════════════════════════════════════════════════════════════════
# SOURCE SNIPPETS
# ═══════════════════════════════════════════════════════════════════════════

ORDERS_PY = textwrap.dedent("""\
    from dataclasses import dataclass
    from typing import Optional


    @dataclass
    class Order:
        AccountId: str
        Total: int = 0
        Note: Optional[str] = None
""")

CUSTOMERS_PY = textwrap.dedent("""\
    class Customer:
        def __init__(self, account_id: str, tenant: "str | None" = None):
            self.AccountId = account_id
            self.Tenant = tenant

        @property
        def DisplayName(self) -> str:
            return "customer " + self.AccountId
""")

INFRA_PY = textwrap.dedent("""\
    class Connection:
        AccountId: str

        def __init__(self, account_id):
            self.AccountId = account_id
""")

GENERICS_PY = textwrap.dedent("""\
    from typing import Generic, TypeVar

    T = TypeVar("T")


    class Box(Generic[T]):
        AccountId: str


    class Wrapper(list[T]):
        AccountId: str


    class Plain:
        AccountId: str
""")

DECLARATIONS_PY = textwrap.dedent("""\
    from propresolvers import generate_property_resolver

    generate_property_resolver("AccountId")
    generate_property_resolver("AccountId")
""")

DECLARATIONS_RESOLVERS = textwrap.dedent("""\
    ;; resolvers for the shared identifiers
    (generate-property-resolver "TenantId"
      :include ("app.domain"))

    (generate-property-resolver "Region" :exclude ("tests" "app.infra"))
""")


# ═══════════════════════════════════════════════════════════════════════════
# BUILDERS
# ═══════════════════════════════════════════════════════════════════════════

def make_unit(module: str, text: str, kind: str = "python", path: Optional[str] = None) -> SourceUnit:
    """Build a :class:`SourceUnit` without touching the filesystem."""
    if path is None:
        suffix = ".py" if kind == "python" else ".resolvers"
        path = module.replace(".", "/") + suffix
    return SourceUnit(path=path, module=module, text=textwrap.dedent(text), kind=kind)


def make_compilation(
    units: Iterable[SourceUnit],
    root_name: Optional[str] = "app",
    references: Iterable[ReferencedSource] = (),
) -> Compilation:
    return Compilation(root_name=root_name, units=tuple(units), references=tuple(references))


def load_resolver(artifact):
    """Exec a generated module and return its resolver class."""
    namespace: Dict[str, object] = {}
    exec(compile(artifact.code, artifact.relative_path, "exec"), namespace)
    return namespace[artifact.artifact_name]


# ═══════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def source_tree(tmp_path, monkeypatch):
    """Write ``{relative path: text}`` below a fresh, importable root.

    Returns a function taking the mapping and returning the root path.
    Modules imported from the tree are dropped from ``sys.modules`` after
    the test so that trees of different tests never mix.
    """
    root = tmp_path / "src"
    root.mkdir()
    monkeypatch.syspath_prepend(str(root))
    heads = set()

    def write(files: Dict[str, str]) -> Path:
        for rel, text in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(text), encoding="utf-8")
            heads.add(Path(rel).parts[0].split(".")[0])
        return root

    yield write

    for name in list(sys.modules):
        if name.split(".")[0] in heads:
            del sys.modules[name]
