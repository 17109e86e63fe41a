# propresolvers/errors.py
"""
Error Types and Diagnostic Reporting

This module provides the error handling infrastructure shared by the
resolver-generation pipeline and the duplicate-declaration analyzer.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                     │
├─────────────────────────────────────────────────────────────────────────────┤
│  ResolverError (base)                                                       │
│  ├── DeclarationSyntaxError - Malformed .resolvers declaration files        │
│  ├── HostError              - Unreadable source roots / units               │
│  └── CodeGenError           - Artifact rendering / writing failures         │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error has a unique code following the pattern PRNNN:
  - 001-099: Declaration analysis diagnostics (reported, not raised)
  - 100-199: Declaration syntax errors
  - 200-299: Host / source loading errors
  - 300-399: Code generation errors
  - 900-999: Internal errors

PR001 (duplicate resolver declaration) is always reported, never raised.
A malformed declaration file raises PR100/PR101; the pipeline turns that
into a reported diagnostic and carries on.  Host and code generation errors
are raised and mapped to an exit code by the CLI.

Example Usage:
──────────────
    from propresolvers.errors import ErrorReporter, ResolverErrorCodes, SourceSpan

    reporter = ErrorReporter()
    reporter.report(
        ResolverErrorCodes.DUPLICATE_RESOLVER,
        "Property resolver for 'AccountId' is already defined",
        span=SourceSpan(file="app/resolvers.py", line=4, column=1),
    )

    if reporter.has_errors():
        for diag in reporter.diagnostics:
            print(diag.to_gcc_format())
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, auto, unique
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
)


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR SEVERITY AND CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorSeverity(Enum):
    """Severity levels for diagnostics."""

    # Standard errors that must be fixed
    ERROR = "error"

    # Warnings that indicate potential issues
    WARNING = "warning"

    # Informational messages
    INFO = "info"

    def is_error(self) -> bool:
        return self is ErrorSeverity.ERROR


@unique
class ErrorPhase(Enum):
    """Pipeline phase where the error occurred."""

    DECLARATION = "declaration"  # Declaration parsing / analysis
    HOST = "host"                # Loading the compilation
    CODEGEN = "codegen"          # Artifact rendering
    INTERNAL = "internal"


@unique
class ErrorCategory(Enum):
    """Fine-grained error categories for filtering and statistics."""

    DUPLICATE_DECLARATION = auto()
    INVALID_DECLARATION = auto()
    UNREADABLE_SOURCE = auto()
    INVALID_TARGET = auto()
    INTERNAL_ERROR = auto()


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CODES
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorCode:
    """
    Structured error code.

    Codes are rendered as ``PREFIX`` followed by a zero-padded three digit
    number, e.g. ``PR001``.
    """

    __slots__ = ("prefix", "number", "category", "phase", "default_severity")

    def __init__(
        self,
        prefix: str,
        number: int,
        category: ErrorCategory,
        phase: ErrorPhase,
        default_severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        self.prefix = prefix
        self.number = number
        self.category = category
        self.phase = phase
        self.default_severity = default_severity

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}{self.number:03d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.category.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ResolverErrorCodes:
    """Predefined error codes."""

    # ═══════════════════════════════════════════════════════════════════════════
    # DECLARATION DIAGNOSTICS (001-099)
    # ═══════════════════════════════════════════════════════════════════════════

    DUPLICATE_RESOLVER = ErrorCode(
        "PR", 1, ErrorCategory.DUPLICATE_DECLARATION, ErrorPhase.DECLARATION,
    )

    # ═══════════════════════════════════════════════════════════════════════════
    # DECLARATION SYNTAX (100-199)
    # ═══════════════════════════════════════════════════════════════════════════

    MALFORMED_DECLARATION_FILE = ErrorCode(
        "PR", 100, ErrorCategory.INVALID_DECLARATION, ErrorPhase.DECLARATION,
    )
    UNKNOWN_DECLARATION_FORM = ErrorCode(
        "PR", 101, ErrorCategory.INVALID_DECLARATION, ErrorPhase.DECLARATION,
    )

    # ═══════════════════════════════════════════════════════════════════════════
    # HOST (200-299)
    # ═══════════════════════════════════════════════════════════════════════════

    UNREADABLE_SOURCE = ErrorCode(
        "PR", 200, ErrorCategory.UNREADABLE_SOURCE, ErrorPhase.HOST,
    )

    # ═══════════════════════════════════════════════════════════════════════════
    # CODE GENERATION (300-399)
    # ═══════════════════════════════════════════════════════════════════════════

    CODEGEN_FAILURE = ErrorCode(
        "PR", 300, ErrorCategory.INVALID_TARGET, ErrorPhase.CODEGEN,
    )

    INTERNAL_ERROR = ErrorCode(
        "PR", 900, ErrorCategory.INTERNAL_ERROR, ErrorPhase.INTERNAL,
    )



# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE LOCATION TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """
    A span of source code with start and end positions.

    Lines and columns are 1-based; ``0`` means unknown.
    """

    file: str = ""
    line: int = 0
    column: int = 0
    end_line: int = 0
    end_column: int = 0

    def __post_init__(self) -> None:
        # Normalize: if end not specified, use start
        if self.end_line == 0:
            object.__setattr__(self, "end_line", self.line)
        if self.end_column == 0:
            object.__setattr__(self, "end_column", self.column)

    @classmethod
    def from_ast_node(cls, node: Any, file: str = "") -> "SourceSpan":
        """Create a SourceSpan from a Python ``ast`` node.

        ``ast`` columns are 0-based offsets; they are shifted to 1-based.
        """
        line = getattr(node, "lineno", 0) or 0
        col = getattr(node, "col_offset", -1)
        end_line = getattr(node, "end_lineno", None) or line
        end_col = getattr(node, "end_col_offset", None)
        return cls(
            file=file,
            line=line,
            column=col + 1 if col is not None and col >= 0 else 0,
            end_line=end_line,
            end_column=end_col + 1 if end_col is not None else 0,
        )

    def __str__(self) -> str:
        if not self.file and self.line == 0:
            return "<unknown location>"

        parts = []
        if self.file:
            parts.append(self.file)
        if self.line > 0:
            parts.append(str(self.line))
            if self.column > 0:
                parts.append(str(self.column))

        return ":".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR MESSAGE FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ErrorNote:
    """
    Additional note attached to an error, such as where a conflicting
    declaration was first made.
    """

    message: str
    span: Optional[SourceSpan] = None
    label: str = ""  # e.g., "note", "help"

    def __str__(self) -> str:
        prefix = f"{self.label}: " if self.label else ""
        if self.span:
            return f"{self.span}: {prefix}{self.message}"
        return f"{prefix}{self.message}"


@dataclass
class ErrorMessage:
    """
    A complete diagnostic with all context.

    This is what the analyzer reports into an :class:`ErrorReporter`.
    """

    code: ErrorCode
    message: str
    span: SourceSpan = field(default_factory=SourceSpan)
    severity: Optional[ErrorSeverity] = None  # None means use code's default
    notes: List[ErrorNote] = field(default_factory=list)
    hint: str = ""

    def __post_init__(self) -> None:
        if self.severity is None:
            self.severity = self.code.default_severity

    def add_note(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        label: str = "note",
    ) -> "ErrorMessage":
        """Add a note to this error message."""
        self.notes.append(ErrorNote(message=message, span=span, label=label))
        return self

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        severity = self.severity.value if self.severity else "error"
        lines = [f"{self.span}: {severity}: {self.message} [{self.code}]"]

        for note in self.notes:
            lines.append(str(note))

        if self.hint:
            lines.append(f"hint: {self.hint}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "code": self.code.code,
            "message": self.message,
            "severity": self.severity.value if self.severity else "error",
            "location": self.span.to_dict(),
            "phase": self.code.phase.value,
            "category": self.code.category.name,
            "notes": [
                {
                    "message": note.message,
                    "label": note.label,
                    "location": note.span.to_dict() if note.span else None,
                }
                for note in self.notes
            ],
            "hint": self.hint,
        }

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR REPORTER
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorReporter:
    """
    Append-only diagnostic sink.

    Reporting is guarded by a lock so that independent source units can be
    analysed from several threads into one reporter.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._diagnostics: List[ErrorMessage] = []

    def add(self, message: ErrorMessage) -> ErrorMessage:
        with self._lock:
            self._diagnostics.append(message)
        return message

    def report(
        self,
        code: ErrorCode,
        message: str,
        span: Optional[SourceSpan] = None,
        severity: Optional[ErrorSeverity] = None,
    ) -> ErrorMessage:
        """Create and record a diagnostic, returning it so notes can be added."""
        return self.add(
            ErrorMessage(
                code=code,
                message=message,
                span=span or SourceSpan(),
                severity=severity,
            )
        )

    @property
    def diagnostics(self) -> List[ErrorMessage]:
        """Snapshot of the recorded diagnostics in report order."""
        with self._lock:
            return list(self._diagnostics)

    def errors(self) -> List[ErrorMessage]:
        return [d for d in self.diagnostics if d.severity and d.severity.is_error()]

    def has_errors(self) -> bool:
        return bool(self.errors())

    def __len__(self) -> int:
        with self._lock:
            return len(self._diagnostics)

    def __iter__(self) -> Iterator[ErrorMessage]:
        return iter(self.diagnostics)


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class ResolverError(Exception):
    """
    Base exception for all propresolvers errors.

    Carries a structured :class:`ErrorMessage` so the CLI can print it the
    same way as reported diagnostics.
    """

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        hint: str = "",
    ) -> None:
        super().__init__(message)
        self.error_message = ErrorMessage(
            code=code or ResolverErrorCodes.INTERNAL_ERROR,
            message=message,
            span=span or SourceSpan(),
            hint=hint,
        )

    @property
    def code(self) -> ErrorCode:
        return self.error_message.code

    @property
    def span(self) -> SourceSpan:
        return self.error_message.span

    def to_gcc_format(self) -> str:
        return self.error_message.to_gcc_format()

    def __str__(self) -> str:
        return self.to_gcc_format()


class DeclarationSyntaxError(ResolverError):
    """A ``.resolvers`` declaration file could not be parsed."""

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        code: Optional[ErrorCode] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=code or ResolverErrorCodes.MALFORMED_DECLARATION_FILE,
            span=span,
            **kwargs,
        )


class HostError(ResolverError):
    """A source root or unit could not be loaded."""

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=ResolverErrorCodes.UNREADABLE_SOURCE,
            span=span,
            **kwargs,
        )


class CodeGenError(ResolverError):
    """An artifact could not be rendered or written."""

    def __init__(
        self,
        message: str,
        span: Optional[SourceSpan] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message=message,
            code=ResolverErrorCodes.CODEGEN_FAILURE,
            span=span,
            **kwargs,
        )
