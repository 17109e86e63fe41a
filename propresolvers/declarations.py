"""propresolvers/declarations.py – read resolver declarations out of source units.

Two declaration surfaces are understood.

Python modules
--------------
Module-level calls to the marker function, bare or attribute-qualified::

    from propresolvers import generate_property_resolver

    generate_property_resolver("AccountId", exclude_namespaces=["tests"])
    RESOLVERS = [propresolvers.generate_property_resolver("TenantId")]

``GeneratePropertyResolver`` is accepted as an alias.  Calls inside
functions, lambdas and class bodies are not declarations.

Declaration files (``*.resolvers``)
-----------------------------------
S-expressions read with ``sexpdata``::

    ;; one form per resolver
    (generate-property-resolver "AccountId"
      :exclude ("System" "tests"))
    (generate-property-resolver "TenantId" :include ("app.domain"))

A declaration whose property name is missing, empty or not a literal
string cannot key anything and is dropped without a diagnostic.
"""

from __future__ import annotations

import ast
import logging
from typing import Any, Iterator, List, Optional, Sequence, Tuple

try:
    import sexpdata
    from sexpdata import Symbol
except ImportError:  # pragma: no cover – allow static analysis w/o dep
    raise ImportError(
        "The 'sexpdata' package is required for .resolvers files. "
        "Install it with:  pip install sexpdata"
    )

from propresolvers.errors import (
    DeclarationSyntaxError,
    ResolverErrorCodes,
    SourceSpan,
)
from propresolvers.host import SourceUnit
from propresolvers.model import ResolverSpecification

logger = logging.getLogger(__name__)

__all__ = [
    "MARKER_NAMES",
    "SEXP_FORM",
    "parse_python_declarations",
    "parse_sexp_declarations",
    "parse_unit_declarations",
]

MARKER_NAMES = frozenset({"generate_property_resolver", "GeneratePropertyResolver"})

_NAME_KEYWORDS = ("property_name", "propertyName", "PropertyName")
_INCLUDE_KEYWORDS = ("include_namespaces", "IncludeNamespaces")
_EXCLUDE_KEYWORDS = ("exclude_namespaces", "ExcludeNamespaces")

SEXP_FORM = "generate-property-resolver"
_SEXP_INCLUDE = (":include", ":include-namespaces")
_SEXP_EXCLUDE = (":exclude", ":exclude-namespaces")


# ═══════════════════════════════════════════════════════════════════════
#  Python surface
# ═══════════════════════════════════════════════════════════════════════

def _callee_name(node: ast.expr) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _module_level_calls(tree: ast.Module) -> Iterator[ast.Call]:
    """Every call reachable from module statements without entering a scope."""
    scopes = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)
    stack: List[ast.AST] = list(reversed(tree.body))
    while stack:
        node = stack.pop()
        if isinstance(node, scopes):
            continue
        if isinstance(node, ast.Call):
            yield node
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


def _literal_strings(node: Optional[ast.expr]) -> Tuple[str, ...]:
    """String entries of a list/tuple literal; absent values are dropped."""
    if node is None:
        return ()
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return (node.value,)
    if isinstance(node, (ast.List, ast.Tuple)):
        return tuple(
            elt.value
            for elt in node.elts
            if isinstance(elt, ast.Constant) and isinstance(elt.value, str)
        )
    return ()


def _keyword(call: ast.Call, names: Sequence[str]) -> Optional[ast.expr]:
    for kw in call.keywords:
        if kw.arg in names:
            return kw.value
    return None


def _declared_name(call: ast.Call) -> Optional[str]:
    node = call.args[0] if call.args else _keyword(call, _NAME_KEYWORDS)
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def parse_python_declarations(unit: SourceUnit) -> List[ResolverSpecification]:
    """Declarations made in one Python module, in source order."""
    try:
        tree = ast.parse(unit.text, filename=unit.path)
    except SyntaxError as exc:
        logger.warning("Skipping declarations in %s: %s", unit.path, exc)
        return []

    specs: List[ResolverSpecification] = []
    for call in _module_level_calls(tree):
        if _callee_name(call.func) not in MARKER_NAMES:
            continue
        name = _declared_name(call)
        if not name:
            logger.debug("%s:%d: declaration without a usable name ignored",
                         unit.path, call.lineno)
            continue
        specs.append(
            ResolverSpecification(
                property_name=name,
                include_namespaces=_literal_strings(_keyword(call, _INCLUDE_KEYWORDS)),
                exclude_namespaces=_literal_strings(_keyword(call, _EXCLUDE_KEYWORDS)),
                site=SourceSpan.from_ast_node(call, unit.path),
            )
        )
    return specs


# ═══════════════════════════════════════════════════════════════════════
#  S-expression surface
# ═══════════════════════════════════════════════════════════════════════

def _line_col(text: str, offset: int) -> Tuple[int, int]:
    line = text.count("\n", 0, offset) + 1
    col = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, col


def _split_forms(text: str, path: str) -> Iterator[Tuple[int, int, str]]:
    """Yield ``(line, column, source)`` for every top-level form.

    ``sexpdata`` does not track positions, so forms are delimited here and
    each one is handed to ``sexpdata.loads`` separately.
    """
    depth = 0
    start = -1
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == ";":
            nl = text.find("\n", i)
            i = n if nl < 0 else nl
            continue
        if ch == '"':
            i += 1
            while i < n and text[i] != '"':
                i += 2 if text[i] == "\\" else 1
            if i >= n:
                line, col = _line_col(text, start if start >= 0 else i - 1)
                raise DeclarationSyntaxError(
                    "Unterminated string literal",
                    span=SourceSpan(file=path, line=line, column=col),
                )
        elif ch == "(":
            if depth == 0:
                start = i
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                line, col = _line_col(text, i)
                raise DeclarationSyntaxError(
                    "Unbalanced ')'",
                    span=SourceSpan(file=path, line=line, column=col),
                )
            if depth == 0:
                line, col = _line_col(text, start)
                yield line, col, text[start:i + 1]
                start = -1
        elif depth == 0 and not ch.isspace():
            line, col = _line_col(text, i)
            raise DeclarationSyntaxError(
                f"Unexpected {ch!r} outside of a form",
                span=SourceSpan(file=path, line=line, column=col),
            )
        i += 1

    if depth != 0:
        line, col = _line_col(text, start)
        raise DeclarationSyntaxError(
            "Unbalanced '(': form is never closed",
            span=SourceSpan(file=path, line=line, column=col),
        )


def _is_symbol(value: Any, name: Optional[str] = None) -> bool:
    return isinstance(value, Symbol) and (name is None or str(value) == name)


def _string_list(value: Any, option: str, span: SourceSpan) -> Tuple[str, ...]:
    if not isinstance(value, list):
        raise DeclarationSyntaxError(
            f"{option} expects a list of strings, got {value!r}", span=span,
        )
    return tuple(str(v) for v in value if isinstance(v, str) and not isinstance(v, Symbol))


def _parse_form(raw: Any, span: SourceSpan) -> Optional[ResolverSpecification]:
    if not isinstance(raw, list) or not raw or not _is_symbol(raw[0]):
        raise DeclarationSyntaxError(
            f"Expected ({SEXP_FORM} ...), got {raw!r}",
            span=span,
            code=ResolverErrorCodes.UNKNOWN_DECLARATION_FORM,
        )
    head = str(raw[0])
    if head != SEXP_FORM:
        raise DeclarationSyntaxError(
            f"Unknown declaration form '{head}'",
            span=span,
            code=ResolverErrorCodes.UNKNOWN_DECLARATION_FORM,
            hint=f"Only ({SEXP_FORM} \"Name\" ...) is recognised",
        )

    rest = raw[1:]
    name: Optional[str] = None
    if rest and isinstance(rest[0], str) and not isinstance(rest[0], Symbol):
        name = str(rest[0])
        rest = rest[1:]

    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()
    while rest:
        option = rest[0]
        if not _is_symbol(option) or len(rest) < 2:
            raise DeclarationSyntaxError(
                f"Expected ':include' or ':exclude' option, got {option!r}", span=span,
            )
        key = str(option)
        if key in _SEXP_INCLUDE:
            include = _string_list(rest[1], key, span)
        elif key in _SEXP_EXCLUDE:
            exclude = _string_list(rest[1], key, span)
        else:
            raise DeclarationSyntaxError(f"Unknown option '{key}'", span=span)
        rest = rest[2:]

    if not name:
        logger.debug("%s: declaration without a usable name ignored", span)
        return None
    return ResolverSpecification(
        property_name=name,
        include_namespaces=include,
        exclude_namespaces=exclude,
        site=span,
    )


def parse_sexp_declarations(unit: SourceUnit) -> List[ResolverSpecification]:
    """Declarations in one ``.resolvers`` file, in file order."""
    specs: List[ResolverSpecification] = []
    for line, col, source in _split_forms(unit.text, unit.path):
        span = SourceSpan(file=unit.path, line=line, column=col)
        try:
            raw = sexpdata.loads(source, nil=None, true=None, false=None)
        except Exception as exc:
            raise DeclarationSyntaxError(
                f"S-expression syntax error: {exc}", span=span
            ) from exc
        spec = _parse_form(raw, span)
        if spec is not None:
            specs.append(spec)
    return specs


def parse_unit_declarations(unit: SourceUnit) -> List[ResolverSpecification]:
    """Dispatch on the unit kind."""
    if unit.is_python:
        if unit.is_generated:
            return []
        return parse_python_declarations(unit)
    return parse_sexp_declarations(unit)
