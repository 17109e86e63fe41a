"""propresolvers/pipeline.py – wire the passes together.

:func:`generate` is the pure core: catalog and declarations in, artifacts
out.  :func:`run` adds collection, duplicate diagnostics and namespace
resolution on top of a loaded :class:`Compilation`.  Neither caches
anything; the same inputs always give the same outputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from propresolvers.catalog import index_compilation
from propresolvers.collector import SpecificationCollector
from propresolvers.dedup import DedupResult, deduplicate
from propresolvers.diagnostics import DuplicateResolverAnalyzer
from propresolvers.emitter import emit_artifacts, resolve_output_namespace
from propresolvers.errors import ErrorMessage, ErrorReporter
from propresolvers.host import Compilation, GeneratorConfig
from propresolvers.model import GeneratedArtifact, ResolverSpecification, TypeDescriptor

logger = logging.getLogger(__name__)

__all__ = ["GenerationResult", "PipelineResult", "generate", "run"]


@dataclass(frozen=True)
class GenerationResult:
    artifacts: Tuple[GeneratedArtifact, ...]
    dedup: DedupResult


@dataclass
class PipelineResult:
    """Everything one pass over a compilation produced."""

    namespace: str
    catalog: List[TypeDescriptor]
    specifications: List[ResolverSpecification]
    artifacts: List[GeneratedArtifact]
    reporter: ErrorReporter = field(default_factory=ErrorReporter)

    @property
    def diagnostics(self) -> List[ErrorMessage]:
        return self.reporter.diagnostics

    @property
    def has_errors(self) -> bool:
        return self.reporter.has_errors()


def generate(
    catalog: Sequence[TypeDescriptor],
    specs: Sequence[ResolverSpecification],
    namespace: str,
) -> GenerationResult:
    dedup = deduplicate(specs)
    for spec in dedup.surplus:
        logger.debug("Dropping repeated declaration of %r at %s", spec.property_name, spec.site)
    artifacts = emit_artifacts(dedup.retained, catalog, namespace)
    return GenerationResult(artifacts=tuple(artifacts), dedup=dedup)


def run(
    compilation: Compilation,
    config: Optional[GeneratorConfig] = None,
    reporter: Optional[ErrorReporter] = None,
) -> PipelineResult:
    """Run every pass over *compilation*.

    Malformed declaration files and duplicate declarations are reported
    into *reporter*; artifacts are still produced for everything else.
    """
    config = config or GeneratorConfig()
    reporter = reporter if reporter is not None else ErrorReporter()
    for warning in config.validate():
        logger.warning("Config: %s", warning)

    collector = SpecificationCollector(reporter)
    analyzer = DuplicateResolverAnalyzer()
    per_unit = collector.primary_declarations(compilation)
    specs: List[ResolverSpecification] = []
    for _unit, unit_specs in per_unit:
        analyzer.analyze_specs(unit_specs, reporter)
        specs.extend(unit_specs)
    specs.extend(collector.referenced_declarations(compilation))

    catalog = index_compilation(compilation)
    namespace = resolve_output_namespace(compilation, config.output_namespace)
    result = generate(catalog, specs, namespace)

    logger.info(
        "Generated %d resolver(s) into %s from %d type(s); %d diagnostic(s)",
        len(result.artifacts), namespace, len(catalog), len(reporter),
    )
    return PipelineResult(
        namespace=namespace,
        catalog=catalog,
        specifications=specs,
        artifacts=list(result.artifacts),
        reporter=reporter,
    )
