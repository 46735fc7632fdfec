"""Error taxonomy for the generics checker.

Every failure is an exception carrying the Location of the site it
belongs to and the types involved. The site facade in
templatecheck.checker turns these into per-site results, so one failing
call never stops the analysis of another.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from templatecheck.types import Type, format_type


@dataclass(frozen=True)
class Location:
    """Location information for error reporting."""

    path: str

    def index(self, idx: int | str) -> Location:
        """Create a child location for an indexed access."""
        return Location(f"{self.path}[{idx!r}]")


UNKNOWN_LOCATION = Location("<unknown>")


@dataclass
class TemplateCheckError(Exception):
    """Base class for every error reported by the checker."""

    message: str
    location: Location = field(default=UNKNOWN_LOCATION, kw_only=True)

    def __str__(self) -> str:
        return f"{self.message} at {self.location.path}"

    def format(self) -> str:
        """Format the error for display."""
        return f"{self.location.path}: {self.message}"


@dataclass
class ArityError(TemplateCheckError):
    """Number of arguments does not match the declaration."""

    expected: str
    actual: int

    def format(self) -> str:
        return (
            f"{self.location.path}: Wrong number of arguments\n"
            f"  Expected: {self.expected}\n"
            f"  Actual:   {self.actual}"
        )


@dataclass
class GenericArityError(ArityError):
    """A generic type is applied to the wrong number of type arguments."""

    base: str

    def format(self) -> str:
        return (
            f"{self.location.path}: Wrong number of type arguments for {self.base}\n"
            f"  Expected: {self.expected}\n"
            f"  Actual:   {self.actual}"
        )


@dataclass
class TypeMismatchError(TemplateCheckError):
    """Declared and actual types cannot be matched structurally."""

    expected: Type
    actual: Type

    def format(self) -> str:
        return (
            f"{self.location.path}: Type mismatch\n"
            f"  Expected: {format_type(self.expected)}\n"
            f"  Actual:   {format_type(self.actual)}\n"
            f"  Reason:   {self.message}"
        )


@dataclass
class UnderconstrainedTemplateError(TemplateCheckError):
    """A template received no binding from arguments or expected type."""

    templates: tuple[str, ...]

    def format(self) -> str:
        return (
            f"{self.location.path}: Unable to resolve template type\n"
            f"  Templates: {', '.join(self.templates)}"
        )


@dataclass
class InconsistentTemplateError(TemplateCheckError):
    """The same template was bound to incompatible types."""

    template: str
    first: Type
    second: Type

    def format(self) -> str:
        return (
            f"{self.location.path}: Conflicting bindings for template {self.template}\n"
            f"  First:  {format_type(self.first)}\n"
            f"  Second: {format_type(self.second)}"
        )


@dataclass
class BoundViolationError(TemplateCheckError):
    """An inferred type is not a subtype of the template's bound."""

    template: str
    bound: Type
    inferred: Type

    def format(self) -> str:
        return (
            f"{self.location.path}: Template bound violated\n"
            f"  Template: {self.template}\n"
            f"  Inferred: {format_type(self.inferred)}\n"
            f"  Bound:    {format_type(self.bound)}"
        )


@dataclass
class VarianceViolationError(TemplateCheckError):
    """An invariant template was given a narrower or wider argument."""

    base: str
    template: str
    expected: Type
    actual: Type

    def format(self) -> str:
        return (
            f"{self.location.path}: Template {self.template} of {self.base} "
            "is invariant\n"
            f"  Expected: {format_type(self.expected)}\n"
            f"  Actual:   {format_type(self.actual)}\n"
            f"  Reason:   {self.message}"
        )


@dataclass
class UnknownTemplateError(TemplateCheckError):
    """A template name is not declared in the current scope."""

    template: str
    owner: str


@dataclass
class DuplicateTemplateError(TemplateCheckError):
    """A template name is declared twice on the same owner."""

    template: str
    owner: str


@dataclass
class UnknownClassError(TemplateCheckError):
    """A nominal type is not known to the class hierarchy."""

    name: str


@dataclass
class UnknownMethodError(TemplateCheckError):
    """A method is not declared on a class or its generic parents."""

    class_name: str
    method: str


@dataclass
class UnknownFunctionError(TemplateCheckError):
    """A called function has no declaration."""

    function: str
