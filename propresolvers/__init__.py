"""propresolvers — per-property resolver generation for Python code bases.

Given a source tree and a set of declarations naming property names, the
generator emits one module per name holding a closed, ordered dispatch
table that reads that property from any known type.  Repeated
declarations are reported as diagnostics.

Submodules
----------
errors
    Structured error codes (``PRxxx``), ``SourceSpan`` / ``ErrorMessage``
    dataclasses, the ``ErrorReporter`` sink and the exception hierarchy.

host
    ``SourceUnit`` / ``Compilation`` snapshots, ``GeneratorConfig`` and
    source-tree discovery.

catalog
    Static ``ast`` indexer producing ``TypeDescriptor`` records.

declarations, collector
    Declaration recognition in Python modules and ``.resolvers``
    S-expression files, and ordered collection across a compilation.

dedup, matching
    First-wins case-insensitive deduplication and namespace filtering.

emitter
    ``CodeEmitter`` and artifact rendering / writing.

diagnostics
    ``DuplicateResolverAnalyzer`` (``PR001``).

pipeline
    ``generate`` (pure core) and ``run`` (full pass).

registry
    ``ResolverRegistry``, the run-time fallback lookup.

main
    CLI entry-point with subcommands: ``generate``, ``check``,
    ``catalog``, ``specs``.

Usage
-----
Command-line::

    python -m propresolvers generate src/app --out-dir build/gen
    python -m propresolvers check src/app --format summary

Programmatic::

    from propresolvers.host import GeneratorConfig, load_compilation
    from propresolvers.pipeline import run

    config = GeneratorConfig(sources=["src/app"])
    result = run(load_compilation(config), config)
    for artifact in result.artifacts:
        print(artifact.relative_path)
"""

from __future__ import annotations

__version__: str = "0.1.0"

from propresolvers.markers import GeneratePropertyResolver, generate_property_resolver
from propresolvers.registry import ResolverRegistry

__all__: list[str] = [
    "__version__",
    "GeneratePropertyResolver",
    "ResolverRegistry",
    "generate_property_resolver",
]
