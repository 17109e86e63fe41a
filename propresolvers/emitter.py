"""
propresolvers/emitter.py
========================

Renders one Python module per retained resolver declaration.

A generated module looks like this::

    # <auto-generated/>
    \"\"\"Property resolver for 'AccountId'. ...\"\"\"

    from __future__ import annotations

    from typing import Any, Callable, Optional, Tuple

    import app.domain.orders as _m0

    class AccountIdResolver:
        _DISPATCH = (
            (_m0.Order, lambda x: str(x.AccountId)),
        )

        @staticmethod
        def GetAccountId(obj: Any) -> Optional[str]:
            for cls, extract in AccountIdResolver._DISPATCH:
                if isinstance(obj, cls):
                    return extract(obj)
            return None

Dispatch is a closed, ordered table tried with ``isinstance`` in catalog
order; the first match wins.  An artifact is emitted even when nothing
matched, so callers always find the method and simply get ``None``.
"""

from __future__ import annotations

import keyword
import logging
from io import StringIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from propresolvers.errors import CodeGenError
from propresolvers.host import AUTO_GENERATED_MARKER, Compilation, is_dotted_identifier
from propresolvers.matching import Match, match
from propresolvers.model import (
    DispatchEntry,
    GeneratedArtifact,
    ResolverSpecification,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)

__all__ = [
    "CodeEmitter",
    "DEFAULT_OUTPUT_NAMESPACE",
    "build_artifact",
    "emit_artifacts",
    "render_artifact",
    "resolve_output_namespace",
    "write_artifacts",
]

DEFAULT_OUTPUT_NAMESPACE = "generated"
NULLABLE_HELPER = "_str_or_none"


# ═══════════════════════════════════════════════════════════════════════════
# CODE EMITTER
# ═══════════════════════════════════════════════════════════════════════════

class CodeEmitter:
    """Low-level code emission with indentation management.

    Provides a structured way to emit Python code with:
    - Automatic indentation tracking
    - Block context managers
    """

    def __init__(self, indent_str: str = "    ") -> None:
        self._buffer = StringIO()
        self._indent_str = indent_str
        self._indent_level = 0

    def emit(self, code: str) -> None:
        """Emit a line of code at the current indentation."""
        if code.strip():
            self._buffer.write(self._indent_str * self._indent_level)
            self._buffer.write(code)
        self._buffer.write("\n")

    def emit_blank(self, count: int = 1) -> None:
        """Emit blank lines."""
        for _ in range(count):
            self._buffer.write("\n")

    def emit_docstring(self, text: str) -> None:
        lines = text.strip().split("\n")
        if len(lines) == 1:
            self.emit(f'"""{lines[0]}"""')
        else:
            self.emit(f'"""{lines[0]}')
            for line in lines[1:]:
                self.emit(line)
            self.emit('"""')

    def indent(self) -> None:
        self._indent_level += 1

    def dedent(self) -> None:
        self._indent_level = max(0, self._indent_level - 1)

    def block(self, header: str) -> "CodeEmitter._BlockContext":
        """Context manager for indented blocks."""
        return self._BlockContext(self, header)

    class _BlockContext:

        def __init__(self, emitter: "CodeEmitter", header: str) -> None:
            self._emitter = emitter
            self._header = header

        def __enter__(self) -> "CodeEmitter":
            self._emitter.emit(self._header)
            self._emitter.indent()
            return self._emitter

        def __exit__(self, *args: Any) -> None:
            self._emitter.dedent()

    def get_code(self) -> str:
        return self._buffer.getvalue()

    @staticmethod
    def make_identifier(name: str) -> str:
        """Convert a name to a valid Python identifier.

        Names that already are identifiers (Unicode letters included) are
        returned unchanged.
        """
        if name.isidentifier() and not keyword.iskeyword(name):
            return name
        result = name.replace("-", "_")
        # Keep only characters that may continue an identifier
        result = "".join(ch for ch in result if ("_" + ch).isidentifier())
        if result and not result.isidentifier():
            result = "_" + result
        if keyword.iskeyword(result):
            result = result + "_"
        return result or "_unnamed"


# ═══════════════════════════════════════════════════════════════════════════
# ARTIFACTS
# ═══════════════════════════════════════════════════════════════════════════

def resolve_output_namespace(
    compilation: Compilation,
    override: Optional[str] = None,
) -> str:
    """Override, else root name, else first top-level package, else ``generated``."""
    if override:
        if not is_dotted_identifier(override):
            raise CodeGenError(f"output namespace {override!r} is not a dotted identifier")
        return override
    if compilation.root_name:
        return compilation.root_name
    for package in compilation.top_level_packages():
        if is_dotted_identifier(package):
            return package
    return DEFAULT_OUTPUT_NAMESPACE


def _entries(matches: Sequence[Match]) -> List[DispatchEntry]:
    return [
        DispatchEntry(
            type_name=type_desc.qualified_name,
            module=type_desc.module,
            attribute_path=type_desc.attribute_path,
            property_name=prop.name,
            nullable=prop.nullable,
        )
        for type_desc, prop in matches
    ]


def render_artifact(
    class_name: str,
    method_name: str,
    property_name: str,
    namespace: str,
    entries: Sequence[DispatchEntry],
) -> str:
    """Render the Python source of one resolver module."""
    aliases: Dict[str, str] = {}
    for entry in entries:
        if entry.module not in aliases:
            aliases[entry.module] = f"_m{len(aliases)}"
    needs_helper = any(e.nullable for e in entries)

    em = CodeEmitter()
    em.emit(AUTO_GENERATED_MARKER)
    em.emit_docstring(
        f"Property resolver for {property_name!r}.\n"
        f"\n"
        f"Generated by propresolvers into ``{namespace}``; do not edit."
    )
    em.emit_blank()
    em.emit("from __future__ import annotations")
    em.emit_blank()
    em.emit("from typing import Any, Callable, Optional, Tuple")
    if aliases:
        em.emit_blank()
        for module, alias in aliases.items():
            em.emit(f"import {module} as {alias}")
    em.emit_blank(2)

    if needs_helper:
        with em.block(f"def {NULLABLE_HELPER}(value: Any) -> Optional[str]:"):
            em.emit("return None if value is None else str(value)")
        em.emit_blank(2)

    with em.block(f"class {class_name}:"):
        em.emit_docstring(f"Resolves {property_name!r} on any known type.")
        em.emit_blank()
        table = "_DISPATCH: Tuple[Tuple[type, Callable[[Any], Optional[str]]], ...] ="
        if entries:
            with em.block(f"{table} ("):
                for entry in entries:
                    target = f"{aliases[entry.module]}.{entry.attribute_path}"
                    access = f"x.{entry.property_name}"
                    value = f"{NULLABLE_HELPER}({access})" if entry.nullable else f"str({access})"
                    em.emit(f"({target}, lambda x: {value}),")
            em.emit(")")
        else:
            em.emit(f"{table} ()")
        em.emit_blank()
        em.emit("@staticmethod")
        with em.block(f"def {method_name}(obj: Any) -> Optional[str]:"):
            with em.block(f"for cls, extract in {class_name}._DISPATCH:"):
                with em.block("if isinstance(obj, cls):"):
                    em.emit("return extract(obj)")
            em.emit("return None")

    return em.get_code()


def build_artifact(
    spec: ResolverSpecification,
    matches: Sequence[Match],
    namespace: str,
) -> GeneratedArtifact:
    class_name = CodeEmitter.make_identifier(spec.artifact_name)
    method_name = CodeEmitter.make_identifier(spec.method_name)
    entries = _entries(matches)
    code = render_artifact(class_name, method_name, spec.property_name, namespace, entries)
    return GeneratedArtifact(
        artifact_name=class_name,
        method_name=method_name,
        namespace=namespace,
        property_name=spec.property_name,
        entries=tuple(entries),
        code=code,
    )


def emit_artifacts(
    specs: Iterable[ResolverSpecification],
    catalog: Sequence[TypeDescriptor],
    namespace: str,
) -> List[GeneratedArtifact]:
    """One artifact per specification, in specification order."""
    artifacts: List[GeneratedArtifact] = []
    taken: Dict[str, str] = {}
    for spec in specs:
        artifact = build_artifact(spec, match(spec, catalog), namespace)
        previous = taken.get(artifact.artifact_name)
        if previous is not None:
            raise CodeGenError(
                f"resolvers for {previous!r} and {spec.property_name!r} "
                f"both render as {artifact.artifact_name}",
                span=spec.site,
            )
        taken[artifact.artifact_name] = spec.property_name
        if not artifact.entries:
            logger.info("No type exposes %r; emitting an empty resolver", spec.property_name)
        else:
            logger.debug(
                "%s: %d dispatch entr%s",
                artifact.artifact_name,
                len(artifact.entries),
                "y" if len(artifact.entries) == 1 else "ies",
            )
        artifacts.append(artifact)
    return artifacts


def write_artifacts(artifacts: Iterable[GeneratedArtifact], out_dir: str) -> List[Path]:
    """Write each artifact below *out_dir*; missing ``__init__.py`` files are created."""
    root = Path(out_dir)
    written: List[Path] = []
    for artifact in artifacts:
        target = root / artifact.relative_path
        try:
            package = root
            for part in artifact.namespace.split("."):
                package = package / part
                package.mkdir(parents=True, exist_ok=True)
                init = package / "__init__.py"
                if not init.exists():
                    init.write_text("", encoding="utf-8")
            target.write_text(artifact.code, encoding="utf-8")
        except OSError as exc:
            raise CodeGenError(f"cannot write {target}: {exc}") from exc
        logger.info("Wrote %s", target)
        written.append(target)
    return written
