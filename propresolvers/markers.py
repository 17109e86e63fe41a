"""propresolvers/markers.py – the declaration marker used in user code.

::

    from propresolvers import generate_property_resolver

    generate_property_resolver("AccountId", exclude_namespaces=["tests"])

The generator reads these calls statically; calling the function at run
time only builds a :class:`ResolverSpecification` and has no side effects.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple, Union

from propresolvers.model import ResolverSpecification

__all__ = ["GeneratePropertyResolver", "generate_property_resolver"]

Namespaces = Optional[Union[str, Iterable[Optional[str]]]]


def _namespaces(values: Namespaces) -> Tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(v for v in values if isinstance(v, str))


def generate_property_resolver(
    property_name: str,
    include_namespaces: Namespaces = None,
    exclude_namespaces: Namespaces = None,
) -> ResolverSpecification:
    return ResolverSpecification(
        property_name=property_name,
        include_namespaces=_namespaces(include_namespaces),
        exclude_namespaces=_namespaces(exclude_namespaces),
    )


GeneratePropertyResolver = generate_property_resolver
