# tests/test_emitter.py
"""
Tests for artifact rendering: the generated modules must be valid Python,
dispatch in catalog order and honour nullability.
"""

import pytest

from propresolvers.catalog import index_catalog
from propresolvers.emitter import (
    CodeEmitter,
    DEFAULT_OUTPUT_NAMESPACE,
    build_artifact,
    emit_artifacts,
    resolve_output_namespace,
    write_artifacts,
)
from propresolvers.errors import CodeGenError
from propresolvers.host import AUTO_GENERATED_MARKER, SourceUnit
from propresolvers.matching import match
from propresolvers.model import ResolverSpecification
from tests.conftest import CUSTOMERS_PY, ORDERS_PY, load_resolver, make_compilation, make_unit


def _compile_check(code: str):
    """Assert code is valid Python."""
    compile(code, "<test>", "exec")


def _catalog():
    return index_catalog([
        make_unit("app.domain.orders", ORDERS_PY),
        make_unit("app.domain.customers", CUSTOMERS_PY),
    ])


class TestCodeEmitter:

    def test_blocks_and_indentation(self):
        em = CodeEmitter()
        with em.block("def f():"):
            with em.block("if True:"):
                em.emit("return 1")
            em.emit("return 0")
        assert em.get_code() == "def f():\n    if True:\n        return 1\n    return 0\n"

    def test_blank_lines_carry_no_indentation(self):
        em = CodeEmitter()
        with em.block("class A:"):
            em.emit("")
            em.emit("x = 1")
        assert em.get_code() == "class A:\n\n    x = 1\n"

    @pytest.mark.parametrize("name,expected", [
        ("AccountIdResolver", "AccountIdResolver"),
        ("Account-Id", "Account_Id"),
        ("2fa", "_2fa"),
        ("class", "class_"),
        ("a.b c", "abc"),
        ("!!!", "_unnamed"),
        ("Größe", "Größe"),
        ("Größe-Wert", "Größe_Wert"),
        ("2Größe", "_2Größe"),
    ])
    def test_make_identifier(self, name, expected):
        assert CodeEmitter.make_identifier(name) == expected


class TestRendering:

    def test_header_and_structure(self):
        spec = ResolverSpecification("AccountId")
        artifact = build_artifact(spec, match(spec, _catalog()), "app")
        code = artifact.code
        _compile_check(code)
        assert code.startswith(AUTO_GENERATED_MARKER + "\n")
        assert "from __future__ import annotations" in code
        assert "class AccountIdResolver:" in code
        assert "def GetAccountId(obj: Any) -> Optional[str]:" in code
        assert artifact.relative_path == "app/AccountIdResolver.py"

    def test_module_aliases_in_first_use_order(self):
        spec = ResolverSpecification("AccountId")
        code = build_artifact(spec, match(spec, _catalog()), "app").code
        assert "import app.domain.customers as _m0" in code
        assert "import app.domain.orders as _m1" in code
        assert code.index("(_m0.Customer,") < code.index("(_m1.Order,")

    def test_non_nullable_uses_str(self):
        spec = ResolverSpecification("accountid")
        code = build_artifact(spec, match(spec, _catalog()), "app").code
        assert "lambda x: str(x.AccountId)" in code
        assert "_str_or_none" not in code

    def test_nullable_uses_helper(self):
        spec = ResolverSpecification("Note")
        code = build_artifact(spec, match(spec, _catalog()), "app").code
        assert "def _str_or_none(value: Any) -> Optional[str]:" in code
        assert "lambda x: _str_or_none(x.Note)" in code

    def test_method_uses_declared_casing(self):
        spec = ResolverSpecification("accountID")
        artifact = build_artifact(spec, match(spec, _catalog()), "app")
        assert artifact.artifact_name == "accountIDResolver"
        assert artifact.method_name == "GetaccountID"
        assert "x.AccountId" in artifact.code

    def test_empty_artifact(self):
        spec = ResolverSpecification("Missing")
        artifact = build_artifact(spec, [], "app")
        _compile_check(artifact.code)
        assert artifact.entries == ()
        assert "import app" not in artifact.code
        resolver = load_resolver(artifact)
        assert resolver.GetMissing(object()) is None

    def test_sanitized_names(self):
        spec = ResolverSpecification("Account-Id")
        artifact = build_artifact(spec, [], "app")
        _compile_check(artifact.code)
        assert artifact.artifact_name == "Account_IdResolver"
        assert artifact.method_name == "GetAccount_Id"

    def test_unicode_names_kept(self):
        spec = ResolverSpecification("Größe")
        artifact = build_artifact(spec, [], "app")
        _compile_check(artifact.code)
        assert artifact.artifact_name == "GrößeResolver"
        assert artifact.method_name == "GetGröße"
        assert load_resolver(artifact).GetGröße(object()) is None

    def test_deterministic(self):
        spec = ResolverSpecification("AccountId")
        first = build_artifact(spec, match(spec, _catalog()), "app")
        second = build_artifact(spec, match(spec, _catalog()), "app")
        assert first == second
        assert first.code == second.code


class TestEmitArtifacts:

    def test_one_artifact_per_spec_in_order(self):
        specs = [ResolverSpecification("Total"), ResolverSpecification("AccountId"),
                 ResolverSpecification("Nothing")]
        artifacts = emit_artifacts(specs, _catalog(), "app")
        assert [a.artifact_name for a in artifacts] == [
            "TotalResolver", "AccountIdResolver", "NothingResolver",
        ]
        assert [len(a.entries) for a in artifacts] == [1, 2, 0]

    def test_colliding_identifiers_rejected(self):
        specs = [ResolverSpecification("Account-Id"), ResolverSpecification("Account_Id")]
        with pytest.raises(CodeGenError):
            emit_artifacts(specs, [], "app")


class TestOutputNamespace:

    def test_override_wins(self):
        compilation = make_compilation([], root_name="app")
        assert resolve_output_namespace(compilation, "app.generated") == "app.generated"

    def test_invalid_override(self):
        with pytest.raises(CodeGenError):
            resolve_output_namespace(make_compilation([]), "not valid!")

    def test_root_name(self):
        assert resolve_output_namespace(make_compilation([], root_name="billing")) == "billing"

    def test_first_top_level_package(self):
        compilation = make_compilation(
            [make_unit("zeta.m", ""), make_unit("alpha.m", "")], root_name=None,
        )
        assert resolve_output_namespace(compilation) == "alpha"

    def test_sentinel(self):
        assert resolve_output_namespace(make_compilation([], root_name=None)) == DEFAULT_OUTPUT_NAMESPACE


class TestWriteArtifacts:

    def test_writes_modules_and_packages(self, tmp_path):
        spec = ResolverSpecification("AccountId")
        artifact = build_artifact(spec, [], "app.generated")
        (written,) = write_artifacts([artifact], str(tmp_path))
        assert written == tmp_path / "app" / "generated" / "AccountIdResolver.py"
        assert written.read_text(encoding="utf-8") == artifact.code
        assert (tmp_path / "app" / "__init__.py").exists()
        assert (tmp_path / "app" / "generated" / "__init__.py").exists()

    def test_existing_init_untouched(self, tmp_path):
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "__init__.py").write_text("VALUE = 1\n", encoding="utf-8")
        write_artifacts([build_artifact(ResolverSpecification("X"), [], "app")], str(tmp_path))
        assert (tmp_path / "app" / "__init__.py").read_text(encoding="utf-8") == "VALUE = 1\n"

    def test_written_module_is_not_reindexed(self, tmp_path):
        artifact = build_artifact(ResolverSpecification("X"), [], "app")
        unit = SourceUnit(path="app/XResolver.py", module="app.XResolver", text=artifact.code)
        assert unit.is_generated
        assert index_catalog([unit]) == []


class TestGeneratedBehaviour:

    def test_dispatch_on_real_types(self, source_tree):
        source_tree({
            "shop/__init__.py": "",
            "shop/orders.py": ORDERS_PY,
            "shop/customers.py": CUSTOMERS_PY,
        })
        catalog = index_catalog([
            make_unit("shop.orders", ORDERS_PY),
            make_unit("shop.customers", CUSTOMERS_PY),
        ])
        account = ResolverSpecification("AccountId")
        note = ResolverSpecification("Note")
        account_resolver = load_resolver(build_artifact(account, match(account, catalog), "shop"))
        note_resolver = load_resolver(build_artifact(note, match(note, catalog), "shop"))

        from shop.customers import Customer
        from shop.orders import Order

        assert account_resolver.GetAccountId(Order(AccountId="A-1")) == "A-1"
        assert account_resolver.GetAccountId(Customer(42)) == "42"
        assert account_resolver.GetAccountId(object()) is None
        assert account_resolver.GetAccountId(None) is None
        assert note_resolver.GetNote(Order(AccountId="A-1")) is None
        assert note_resolver.GetNote(Order(AccountId="A-1", Note="rush")) == "rush"

    def test_first_matching_entry_wins_for_subclasses(self, source_tree):
        text = """\
            class Base:
                Code: str = "base"

            class Child(Base):
                Code: str = "child"
        """
        source_tree({"kinds.py": text})
        catalog = index_catalog([make_unit("kinds", text)])
        spec = ResolverSpecification("Code")
        resolver = load_resolver(build_artifact(spec, match(spec, catalog), "generated"))

        from kinds import Child

        assert [cls.__name__ for cls, _ in resolver._DISPATCH] == ["Base", "Child"]
        assert resolver.GetCode(Child()) == "child"

    def test_typed_dict_is_not_a_dispatch_target(self, source_tree):
        text = """\
            from typing import TypedDict

            class Payload(TypedDict):
                AccountId: str

            class Order:
                AccountId: str = "A-7"
        """
        source_tree({"payloads.py": text})
        catalog = index_catalog([make_unit("payloads", text)])
        spec = ResolverSpecification("AccountId")
        resolver = load_resolver(build_artifact(spec, match(spec, catalog), "generated"))

        from payloads import Order

        assert [cls.__name__ for cls, _ in resolver._DISPATCH] == ["Order"]
        assert resolver.GetAccountId(Order()) == "A-7"
        assert resolver.GetAccountId({"AccountId": "A-8"}) is None

    def test_unicode_property_round_trips(self, source_tree):
        text = """\
            class Item:
                Größe: int = 42
        """
        source_tree({"items_de.py": text})
        catalog = index_catalog([make_unit("items_de", text)])
        spec = ResolverSpecification("Größe")
        resolver = load_resolver(build_artifact(spec, match(spec, catalog), "generated"))

        from items_de import Item

        assert resolver.__name__ == "GrößeResolver"
        assert resolver.GetGröße(Item()) == "42"
