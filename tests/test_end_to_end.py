# tests/test_end_to_end.py
"""
End-to-end tests: source tree on disk → compilation → artifacts and
diagnostics → generated code executed against the real classes.
"""

import logging

from propresolvers.catalog import index_catalog
from propresolvers.host import GeneratorConfig, load_compilation
from propresolvers.model import ResolverSpecification
from propresolvers.pipeline import generate, run
from tests.conftest import (
    CUSTOMERS_PY,
    DECLARATIONS_PY,
    DECLARATIONS_RESOLVERS,
    GENERICS_PY,
    INFRA_PY,
    ORDERS_PY,
    load_resolver,
    make_compilation,
    make_unit,
)

ORDER_ONLY = """\
    class Order:
        AccountId: str
"""


class TestAccountIdScenario:

    def _result(self):
        compilation = make_compilation([
            make_unit("app.orders", ORDER_ONLY),
            make_unit("app.resolvers", DECLARATIONS_PY),
        ])
        return run(compilation)

    def test_one_artifact_one_entry(self):
        result = self._result()
        (artifact,) = result.artifacts
        assert artifact.artifact_name == "AccountIdResolver"
        assert artifact.method_name == "GetAccountId"
        assert [e.type_name for e in artifact.entries] == ["app.orders.Order"]

    def test_one_diagnostic_at_second_declaration(self):
        result = self._result()
        (diag,) = result.diagnostics
        assert diag.code.code == "PR001"
        assert (diag.span.file, diag.span.line) == ("app/resolvers.py", 4)
        assert result.has_errors


class TestGenerate:

    def test_pure_and_deterministic(self):
        catalog = index_catalog([make_unit("app.domain.orders", ORDERS_PY)])
        specs = [ResolverSpecification("Note"), ResolverSpecification("AccountId")]
        first = generate(catalog, specs, "app")
        second = generate(catalog, specs, "app")
        assert first == second
        assert [a.code for a in first.artifacts] == [a.code for a in second.artifacts]

    def test_first_wins_casing(self):
        catalog = index_catalog([make_unit("app.domain.orders", ORDERS_PY)])
        specs = [ResolverSpecification("accountId"), ResolverSpecification("AccountId")]
        result = generate(catalog, specs, "app")
        (artifact,) = result.artifacts
        assert artifact.method_name == "GetaccountId"
        assert len(result.dedup.surplus) == 1

    def test_generic_types_never_dispatched(self):
        catalog = index_catalog([make_unit("app.generics", GENERICS_PY)])
        (artifact,) = generate(catalog, [ResolverSpecification("AccountId")], "app").artifacts
        assert [e.type_name for e in artifact.entries] == ["app.generics.Plain"]

    def test_empty_match_still_emits(self):
        (artifact,) = generate([], [ResolverSpecification("Nothing")], "app").artifacts
        assert artifact.entries == ()
        assert "GetNothing" in artifact.code


class TestRun:

    def test_namespace_filtering_and_references(self):
        compilation = make_compilation(
            [
                make_unit("app.domain.orders", ORDERS_PY),
                make_unit("app.infra.db", INFRA_PY),
                make_unit("app.decl", """\
                    generate_property_resolver("AccountId", include_namespaces=["app.domain"])
                """),
            ],
        )
        result = run(compilation)
        (artifact,) = result.artifacts
        assert [e.type_name for e in artifact.entries] == ["app.domain.orders.Order"]
        assert result.namespace == "app"
        assert result.diagnostics == []

    def test_referenced_declarations_lose_to_primary(self):
        from propresolvers.host import ReferencedSource

        compilation = make_compilation(
            [
                make_unit("app.domain.orders", ORDERS_PY),
                make_unit("app.decl", 'generate_property_resolver("ACCOUNTID")\n'),
            ],
            references=[ReferencedSource("shared", (
                make_unit("shared.decl", '(generate-property-resolver "AccountId")',
                          kind="declarations"),
            ))],
        )
        result = run(compilation)
        (artifact,) = result.artifacts
        assert artifact.method_name == "GetACCOUNTID"
        # Cross-unit repeats are resolved silently.
        assert result.diagnostics == []

    def test_referenced_types_join_the_dispatch_table(self):
        from propresolvers.host import ReferencedSource

        shared = ReferencedSource("shared", (
            make_unit("shared.models", "class Account:\n    AccountId: str\n"),
        ))
        declarations = [
            make_unit("app.domain.orders", ORDERS_PY),
            make_unit("app.decl", """\
                generate_property_resolver("AccountId")
                generate_property_resolver("Total", exclude_namespaces=["shared"])
                GeneratePropertyResolver("Note", exclude_namespaces=["shared"])
            """),
        ]
        result = run(make_compilation(declarations, references=[shared]))
        account, total, note = result.artifacts
        assert [e.type_name for e in account.entries] == [
            "app.domain.orders.Order",
            "shared.models.Account",
        ]
        assert [e.type_name for e in total.entries] == ["app.domain.orders.Order"]
        assert [e.type_name for e in note.entries] == ["app.domain.orders.Order"]
        assert [t.qualified_name for t in result.catalog] == [
            "app.domain.orders.Order",
            "shared.models.Account",
        ]

    def test_excluded_reference_namespace_drops_its_types(self):
        from propresolvers.host import ReferencedSource

        shared = ReferencedSource("shared", (
            make_unit("shared.models", "class Account:\n    AccountId: str\n"),
        ))
        decl = make_unit(
            "app.decl", 'generate_property_resolver("AccountId", exclude_namespaces=["shared"])\n'
        )
        result = run(make_compilation([make_unit("app.domain.orders", ORDERS_PY), decl],
                                      references=[shared]))
        (artifact,) = result.artifacts
        assert [e.type_name for e in artifact.entries] == ["app.domain.orders.Order"]

    def test_malformed_declaration_file_reported(self):
        compilation = make_compilation([
            make_unit("app.domain.orders", ORDERS_PY),
            make_unit("app.bad", '(generate-property-resolver "X" :bogus ())', kind="declarations"),
            make_unit("app.decl", 'generate_property_resolver("Total")\n'),
        ])
        result = run(compilation)
        assert [a.artifact_name for a in result.artifacts] == ["TotalResolver"]
        (diag,) = result.diagnostics
        assert diag.code.code == "PR100"

    def test_config_warnings_logged(self, caplog):
        compilation = make_compilation([])
        config = GeneratorConfig(output_namespace=None)
        with caplog.at_level(logging.WARNING, logger="propresolvers"):
            run(compilation, config)
        assert "no source roots configured" in caplog.text

    def test_output_namespace_override(self):
        compilation = make_compilation([make_unit("app.decl", 'generate_property_resolver("X")\n')])
        result = run(compilation, GeneratorConfig(sources=["src"], output_namespace="app.gen"))
        assert result.artifacts[0].relative_path == "app/gen/XResolver.py"


class TestFromDisk:

    def test_generated_code_runs_against_real_types(self, source_tree, tmp_path):
        root = source_tree({
            "billing/__init__.py": "",
            "billing/domain/__init__.py": "",
            "billing/domain/orders.py": ORDERS_PY,
            "billing/domain/customers.py": CUSTOMERS_PY,
            "billing/infra/__init__.py": "",
            "billing/infra/db.py": INFRA_PY,
            "billing/resolvers.py": """\
                from propresolvers import generate_property_resolver

                generate_property_resolver("AccountId", exclude_namespaces=["billing.infra"])
                generate_property_resolver("Tenant")
            """,
            "billing/shared.resolvers": DECLARATIONS_RESOLVERS,
        })
        config = GeneratorConfig(sources=[str(root / "billing")])
        compilation = load_compilation(config)
        assert compilation.root_name == "billing"

        result = run(compilation, config)
        assert result.diagnostics == []
        by_name = {a.artifact_name: a for a in result.artifacts}
        assert sorted(by_name) == [
            "AccountIdResolver", "RegionResolver", "TenantIdResolver", "TenantResolver",
        ]

        account = by_name["AccountIdResolver"]
        assert [e.type_name for e in account.entries] == [
            "billing.domain.customers.Customer",
            "billing.domain.orders.Order",
        ]

        from billing.domain.customers import Customer
        from billing.infra.db import Connection

        resolver = load_resolver(account)
        assert resolver.GetAccountId(Customer("C-9")) == "C-9"
        assert resolver.GetAccountId(Connection("X")) is None

        tenant = load_resolver(by_name["TenantResolver"])
        assert tenant.GetTenant(Customer("C-9")) is None
        assert tenant.GetTenant(Customer("C-9", tenant="acme")) == "acme"

    def test_written_artifacts_are_skipped_on_rerun(self, source_tree, tmp_path):
        from propresolvers.emitter import write_artifacts

        root = source_tree({
            "shop/__init__.py": "",
            "shop/orders.py": ORDER_ONLY,
            "shop/resolvers.py": 'generate_property_resolver("AccountId")\n',
        })
        config = GeneratorConfig(sources=[str(root / "shop")])
        first = run(load_compilation(config), config)
        write_artifacts(first.artifacts, str(root))
        assert (root / "shop" / "AccountIdResolver.py").exists()

        second = run(load_compilation(config), config)
        assert [a.code for a in second.artifacts] == [a.code for a in first.artifacts]
