"""propresolvers/collector.py – gather every resolver declaration.

Order is part of the contract: primary units sorted by module name (source
order within a unit), then each referenced source in the order it was
given.  Deduplication keeps the first occurrence, so this order decides
which casing names the generated method.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from propresolvers.declarations import parse_unit_declarations
from propresolvers.errors import DeclarationSyntaxError, ErrorReporter
from propresolvers.host import Compilation, SourceUnit
from propresolvers.model import ResolverSpecification

logger = logging.getLogger(__name__)

__all__ = ["SpecificationCollector", "collect_specifications", "collect_unit"]

UnitDeclarations = Tuple[SourceUnit, List[ResolverSpecification]]


def collect_unit(unit: SourceUnit) -> List[ResolverSpecification]:
    """Declarations of a single unit, exactly as written."""
    return parse_unit_declarations(unit)


class SpecificationCollector:
    """Collects :class:`ResolverSpecification` s from a compilation.

    Without a reporter a malformed declaration file raises
    :class:`DeclarationSyntaxError`.  With one, the error is reported and
    the file contributes nothing.
    """

    def __init__(self, reporter: Optional[ErrorReporter] = None) -> None:
        self._reporter = reporter

    def _unit_specs(self, unit: SourceUnit) -> List[ResolverSpecification]:
        try:
            return collect_unit(unit)
        except DeclarationSyntaxError as exc:
            if self._reporter is None:
                raise
            self._reporter.add(exc.error_message)
            logger.warning("Ignoring declarations in %s: %s", unit.path, exc.error_message.message)
            return []

    def primary_declarations(self, compilation: Compilation) -> List[UnitDeclarations]:
        """``(unit, declarations)`` for every primary unit, in module order."""
        ordered = sorted(compilation.units, key=lambda u: (u.module, u.kind, u.path))
        return [(unit, self._unit_specs(unit)) for unit in ordered]

    def referenced_declarations(self, compilation: Compilation) -> List[ResolverSpecification]:
        specs: List[ResolverSpecification] = []
        for reference in compilation.references:
            found = 0
            for unit in reference.units:
                unit_specs = self._unit_specs(unit)
                found += len(unit_specs)
                specs.extend(unit_specs)
            logger.debug("Reference %s contributed %d declaration(s)", reference.name, found)
        return specs

    def collect(self, compilation: Compilation) -> List[ResolverSpecification]:
        specs = [s for _, unit_specs in self.primary_declarations(compilation) for s in unit_specs]
        specs.extend(self.referenced_declarations(compilation))
        logger.info("Collected %d resolver declaration(s)", len(specs))
        return specs


def collect_specifications(compilation: Compilation) -> List[ResolverSpecification]:
    return SpecificationCollector().collect(compilation)
