"""propresolvers/catalog.py – static type catalog of a Python source tree.

The indexer never imports user code.  It parses every unit with the
standard library :mod:`ast` module and records, for every public concrete
class, its readable public properties and whether each may be ``None``.

Traversal order
---------------
Primary units in module-name order, then the units of each referenced
code base, references in the order given.  Within a unit, classes in
source order (including those under ``if``/``try``/``with`` blocks), each
class followed depth-first by the classes nested inside it.  Dispatch
tables follow this order, so it must not depend on anything but the
source text.  A qualified name seen twice keeps its first definition.

What counts as a property
-------------------------
* annotated class attributes (``name: T`` / ``name: T = value``), except
  ``ClassVar[...]`` and ``InitVar[...]``;
* methods decorated with ``@property`` or ``@cached_property``;
* ``self.name = ...`` assignments in the body of ``__init__``, not in
  functions, lambdas or classes nested inside it.

Names starting with ``_`` are never properties.

What is skipped
---------------
Private classes (or classes nested in one), classes defined inside
functions, ``Protocol``, ``Enum`` and ``TypedDict`` classes, and
parameterized classes: PEP 695 type parameters, a
``Generic[...]``/``Protocol[...]`` base, or a base subscripted with a
module-level ``TypeVar``.  A resolver dispatches on the runtime class, and
an open generic has no single class object to check against.
"""

from __future__ import annotations

import ast
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from propresolvers.errors import SourceSpan
from propresolvers.host import Compilation, SourceUnit
from propresolvers.model import PropertyDescriptor, TypeDescriptor

logger = logging.getLogger(__name__)

__all__ = [
    "TypeCatalogIndexer",
    "index_catalog",
    "index_compilation",
    "is_nullable_annotation",
]

_PROPERTY_DECORATORS = frozenset({"property", "cached_property"})
_EXCLUDED_WRAPPERS = frozenset({"ClassVar", "InitVar"})
_GENERIC_BASES = frozenset({"Generic", "Protocol"})
_NON_CONCRETE_BASES = frozenset({
    "Protocol",
    "Enum",
    "IntEnum",
    "StrEnum",
    "Flag",
    "IntFlag",
    "TypedDict",
})
_TYPEVAR_FACTORIES = frozenset({"TypeVar", "ParamSpec", "TypeVarTuple"})
_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)
_BLOCK_NODES = (ast.stmt, ast.excepthandler, ast.match_case)


# ═══════════════════════════════════════════════════════════════════════════
# ANNOTATION HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def _terminal_name(node: Optional[ast.expr]) -> Optional[str]:
    """``Optional`` for ``Optional``, ``typing.Optional`` and ``t.Optional``."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _parse_string_annotation(node: ast.expr) -> Optional[ast.expr]:
    """Forward references: ``"Optional[Order]"`` → parsed expression."""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            return ast.parse(node.value, mode="eval").body
        except SyntaxError:
            return None
    return node


def _is_none(node: ast.expr) -> bool:
    if isinstance(node, ast.Constant) and node.value is None:
        return True
    return _terminal_name(node) == "None"


def _union_members(node: ast.expr) -> List[ast.expr]:
    """Flatten ``A | B | C`` into ``[A, B, C]``."""
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union_members(node.left) + _union_members(node.right)
    return [node]


def _subscript_args(node: ast.Subscript) -> List[ast.expr]:
    slc = node.slice
    if isinstance(slc, ast.Tuple):
        return list(slc.elts)
    return [slc]


def _wrapped_in_optional(node: ast.expr) -> bool:
    """Signal one: the annotation is an ``Optional[...]`` wrapper."""
    return isinstance(node, ast.Subscript) and _terminal_name(node.value) == "Optional"


def _explicit_none_union(node: ast.expr) -> bool:
    """Signal two: an explicit union that lists ``None``."""
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return any(_is_none(m) for m in _union_members(node))
    if isinstance(node, ast.Subscript) and _terminal_name(node.value) == "Union":
        return any(_is_none(a) for a in _subscript_args(node))
    return False


def is_nullable_annotation(node: Optional[ast.expr]) -> bool:
    """True when an annotation admits ``None``.

    Either signal suffices.  ``Annotated[T, ...]`` is looked through.
    """
    if node is None:
        return False
    parsed = _parse_string_annotation(node)
    if parsed is None:
        return False
    if isinstance(parsed, ast.Subscript) and _terminal_name(parsed.value) == "Annotated":
        args = _subscript_args(parsed)
        return bool(args) and is_nullable_annotation(args[0])
    return _wrapped_in_optional(parsed) or _explicit_none_union(parsed) or _is_none(parsed)


def _is_excluded_wrapper(node: ast.expr) -> bool:
    parsed = _parse_string_annotation(node)
    if parsed is None:
        return False
    if isinstance(parsed, ast.Subscript):
        return _terminal_name(parsed.value) in _EXCLUDED_WRAPPERS
    return _terminal_name(parsed) in _EXCLUDED_WRAPPERS


# ═══════════════════════════════════════════════════════════════════════════
# STATEMENT WALKERS
# ═══════════════════════════════════════════════════════════════════════════

def _class_statements(nodes: Iterable[ast.AST]) -> Iterator[ast.ClassDef]:
    """Class definitions in *nodes* and in the blocks of compound statements.

    Function bodies are not entered; nested class bodies are left to the
    caller.
    """
    for node in nodes:
        if isinstance(node, ast.ClassDef):
            yield node
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            continue
        elif isinstance(node, _BLOCK_NODES):
            yield from _class_statements(
                child for child in ast.iter_child_nodes(node)
                if isinstance(child, _BLOCK_NODES)
            )


def _scope_assignments(body: Sequence[ast.stmt]) -> Iterator[ast.stmt]:
    """``Assign``/``AnnAssign`` statements of one scope, in source order."""
    stack: List[ast.AST] = list(reversed(body))
    while stack:
        node = stack.pop()
        if isinstance(node, _SCOPES):
            continue
        if isinstance(node, (ast.Assign, ast.AnnAssign)):
            yield node
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


def _unpack(
    target: ast.expr, value: Optional[ast.expr]
) -> Iterator[Tuple[ast.expr, Optional[ast.expr]]]:
    """Pair each assignment target with the expression it receives, if known."""
    if isinstance(target, ast.Starred):
        yield from _unpack(target.value, None)
        return
    if not isinstance(target, (ast.Tuple, ast.List)):
        yield target, value
        return
    values: List[Optional[ast.expr]] = [None] * len(target.elts)
    if (
        isinstance(value, (ast.Tuple, ast.List))
        and len(value.elts) == len(target.elts)
        and not any(isinstance(e, ast.Starred) for e in value.elts + target.elts)
    ):
        values = list(value.elts)
    for sub_target, sub_value in zip(target.elts, values):
        yield from _unpack(sub_target, sub_value)


# ═══════════════════════════════════════════════════════════════════════════
# INDEXER
# ═══════════════════════════════════════════════════════════════════════════

class TypeCatalogIndexer:
    """Walks source units and produces ordered :class:`TypeDescriptor` s."""

    def index(self, units: Iterable[SourceUnit]) -> List[TypeDescriptor]:
        catalog = self._index_units(units, set())
        logger.debug("Indexed %d type(s)", len(catalog))
        return catalog

    def index_compilation(self, compilation: Compilation) -> List[TypeDescriptor]:
        """Primary units first, then each reference in the order given."""
        seen: Set[str] = set()
        catalog = self._index_units(compilation.units, seen)
        for reference in compilation.references:
            found = self._index_units(reference.units, seen)
            logger.debug("Reference %s: %d type(s)", reference.name, len(found))
            catalog.extend(found)
        logger.debug("Indexed %d type(s)", len(catalog))
        return catalog

    def _index_units(self, units: Iterable[SourceUnit], seen: Set[str]) -> List[TypeDescriptor]:
        catalog: List[TypeDescriptor] = []
        for unit in sorted(units, key=lambda u: (u.module, u.path)):
            if not unit.is_python or unit.is_generated:
                continue
            for desc in self.index_unit(unit):
                if desc.qualified_name in seen:
                    continue
                seen.add(desc.qualified_name)
                catalog.append(desc)
        return catalog

    def index_unit(self, unit: SourceUnit) -> List[TypeDescriptor]:
        try:
            tree = ast.parse(unit.text, filename=unit.path)
        except SyntaxError as exc:
            logger.warning("Skipping %s: %s", unit.path, exc)
            return []

        typevars = self._module_typevars(tree)
        found: List[TypeDescriptor] = []
        for stmt in _class_statements(tree.body):
            self._visit_class(stmt, unit, [], typevars, found)

        # Conditional definitions (if/else, try/except) keep the first one.
        unique: Dict[str, TypeDescriptor] = {}
        for desc in found:
            unique.setdefault(desc.qualified_name, desc)
        return list(unique.values())

    # -- traversal ----------------------------------------------------------

    def _visit_class(
        self,
        node: ast.ClassDef,
        unit: SourceUnit,
        outer: Sequence[str],
        typevars: Set[str],
        found: List[TypeDescriptor],
    ) -> None:
        path = list(outer) + [node.name]
        if node.name.startswith("_"):
            # Nothing below a private class is reachable from outside.
            return

        if self._is_concrete(node, typevars):
            properties = self._collect_properties(node)
            if properties:
                attribute_path = ".".join(path)
                found.append(
                    TypeDescriptor(
                        qualified_name=f"{unit.module}.{attribute_path}",
                        namespace=unit.module,
                        module=unit.module,
                        attribute_path=attribute_path,
                        properties=tuple(properties),
                        site=SourceSpan.from_ast_node(node, unit.path),
                    )
                )

        for stmt in _class_statements(node.body):
            self._visit_class(stmt, unit, path, typevars, found)

    @staticmethod
    def _module_typevars(tree: ast.Module) -> Set[str]:
        names: Set[str] = set()
        for stmt in tree.body:
            if not isinstance(stmt, ast.Assign) or not isinstance(stmt.value, ast.Call):
                continue
            if _terminal_name(stmt.value.func) not in _TYPEVAR_FACTORIES:
                continue
            for target in stmt.targets:
                if isinstance(target, ast.Name):
                    names.add(target.id)
        return names

    def _is_concrete(self, node: ast.ClassDef, typevars: Set[str]) -> bool:
        if getattr(node, "type_params", None):
            return False
        for base in node.bases:
            if isinstance(base, ast.Subscript):
                if _terminal_name(base.value) in _GENERIC_BASES:
                    return False
                if self._mentions(base.slice, typevars):
                    return False
            if _terminal_name(base) in _NON_CONCRETE_BASES:
                return False
        return True

    @staticmethod
    def _mentions(node: ast.AST, names: Set[str]) -> bool:
        return any(
            isinstance(sub, ast.Name) and sub.id in names
            for sub in ast.walk(node)
        )

    # -- properties ---------------------------------------------------------

    def _collect_properties(self, node: ast.ClassDef) -> List[PropertyDescriptor]:
        ordered: Dict[str, PropertyDescriptor] = {}

        def add(name: str, nullable: bool) -> None:
            if name.startswith("_") or name in ordered:
                return
            ordered[name] = PropertyDescriptor(name=name, nullable=nullable)

        for stmt in node.body:
            if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                if _is_excluded_wrapper(stmt.annotation):
                    continue
                add(stmt.target.id, is_nullable_annotation(stmt.annotation))
            elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                if isinstance(stmt, ast.FunctionDef) and self._is_property(stmt):
                    add(stmt.name, is_nullable_annotation(stmt.returns))
                elif stmt.name == "__init__":
                    for name, nullable in self._init_attributes(stmt):
                        add(name, nullable)
        return list(ordered.values())

    @staticmethod
    def _is_property(func: ast.FunctionDef) -> bool:
        return any(_terminal_name(d) in _PROPERTY_DECORATORS for d in func.decorator_list)

    @staticmethod
    def _init_attributes(func: ast.FunctionDef):
        """Yield ``(name, nullable)`` for ``self.name`` assignments in ``__init__``."""
        params = func.args.posonlyargs + func.args.args + func.args.kwonlyargs
        if not params:
            return
        self_name = params[0].arg
        annotations = {a.arg: a.annotation for a in params[1:]}

        for sub in _scope_assignments(func.body):
            if isinstance(sub, ast.AnnAssign):
                pairs = [(sub.target, sub.value)]
                annotation = sub.annotation
            else:
                pairs = [pair for target in sub.targets for pair in _unpack(target, sub.value)]
                annotation = None
            for target, value in pairs:
                if not (
                    isinstance(target, ast.Attribute)
                    and isinstance(target.value, ast.Name)
                    and target.value.id == self_name
                ):
                    continue
                if annotation is not None:
                    nullable = is_nullable_annotation(annotation)
                elif isinstance(value, ast.Name) and value.id in annotations:
                    nullable = is_nullable_annotation(annotations[value.id])
                else:
                    nullable = value is not None and _is_none(value)
                yield target.attr, nullable


def index_catalog(units: Iterable[SourceUnit]) -> List[TypeDescriptor]:
    """Convenience wrapper around :class:`TypeCatalogIndexer`."""
    return TypeCatalogIndexer().index(units)


def index_compilation(compilation: Compilation) -> List[TypeDescriptor]:
    """Catalog of a whole compilation, referenced code bases included."""
    return TypeCatalogIndexer().index_compilation(compilation)
