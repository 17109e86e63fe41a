"""propresolvers/diagnostics.py – duplicate declaration analysis.

Duplicates are found per source unit.  Within a unit every declaration
after the first one with the same case-insensitive property name gets a
``PR001`` error at its own site, with a note pointing back at the first.
Two units declaring the same name are not reported here; the generator
still keeps only the first of them.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from propresolvers.collector import collect_unit
from propresolvers.dedup import group_by_key
from propresolvers.errors import ErrorMessage, ErrorReporter, ResolverErrorCodes
from propresolvers.host import SourceUnit
from propresolvers.model import ResolverSpecification

logger = logging.getLogger(__name__)

__all__ = ["DUPLICATE_MESSAGE", "DuplicateResolverAnalyzer"]

DUPLICATE_MESSAGE = "Property resolver for '{key}' is already defined"


class DuplicateResolverAnalyzer:
    """Reports repeated resolver declarations into an :class:`ErrorReporter`."""

    code = ResolverErrorCodes.DUPLICATE_RESOLVER

    def analyze_specs(
        self,
        specs: Iterable[ResolverSpecification],
        reporter: ErrorReporter,
    ) -> List[ErrorMessage]:
        """Check the declarations of one unit, given in source order."""
        reported: List[ErrorMessage] = []
        for group in group_by_key(specs):
            if not group.has_duplicates:
                continue
            first = group.first
            for duplicate in group.duplicates:
                diagnostic = reporter.report(
                    self.code,
                    DUPLICATE_MESSAGE.format(key=first.property_name),
                    span=duplicate.site,
                )
                diagnostic.add_note("previously declared here", span=first.site)
                reported.append(diagnostic)
        return reported

    def analyze_unit(self, unit: SourceUnit, reporter: ErrorReporter) -> List[ErrorMessage]:
        reported = self.analyze_specs(collect_unit(unit), reporter)
        if reported:
            logger.debug("%s: %d duplicate declaration(s)", unit.path, len(reported))
        return reported

    def analyze(self, units: Iterable[SourceUnit], reporter: ErrorReporter) -> List[ErrorMessage]:
        reported: List[ErrorMessage] = []
        for unit in units:
            reported.extend(self.analyze_unit(unit, reporter))
        return reported
