"""Type terms for the generics checker.

Types are immutable and compared structurally. A closed set of variants
is used throughout the package:

    Concrete("DateTime")                      -> DateTime
    TemplateRef("T")                          -> T
    Parameterized("array", (Concrete("int"),)) -> array<int>
    Union((TemplateRef("T"), Concrete("null"))) -> T|null
    Top()                                     -> mixed
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import TypeAlias

TOP_NAME = "mixed"


@dataclass(frozen=True)
class Top:
    """Supertype of everything, the implicit bound of a template."""


@dataclass(frozen=True)
class Concrete:
    """A nominal type such as a class, an interface or a scalar category."""

    name: str

    def __post_init__(self) -> None:
        if not self.name:
            msg = "Concrete type name must be non-empty"
            raise ValueError(msg)


@dataclass(frozen=True)
class TemplateRef:
    """Reference to a template declared by the enclosing function or class."""

    name: str


@dataclass(frozen=True)
class Parameterized:
    """A generic type applied to type arguments, e.g. Collection<int>."""

    base: str
    args: tuple[Type, ...]


@dataclass(frozen=True)
class Union:
    """Union of member types.

    Members are kept in declaration order, which matters for inference.
    Build unions with make_union() so duplicates collapse and a single
    member normalizes to that member.
    """

    members: tuple[Type, ...]

    def __post_init__(self) -> None:
        if not self.members:
            msg = "Union must have at least one member"
            raise ValueError(msg)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Union):
            return NotImplemented
        return frozenset(self.members) == frozenset(other.members)

    def __hash__(self) -> int:
        return hash(frozenset(self.members))


Type: TypeAlias = Top | Concrete | TemplateRef | Parameterized | Union


def make_union(members: Iterable[Type]) -> Type:
    """Build a normalized union.

    Nested unions are flattened, duplicates are dropped (first occurrence
    wins), a union containing Top is Top, and a single member is returned
    as-is.
    """
    flat: list[Type] = []
    for member in members:
        candidates = member.members if isinstance(member, Union) else (member,)
        for candidate in candidates:
            if isinstance(candidate, Top):
                return Top()
            if candidate not in flat:
                flat.append(candidate)

    if not flat:
        msg = "Union must have at least one member"
        raise ValueError(msg)
    if len(flat) == 1:
        return flat[0]
    return Union(tuple(flat))


def apply_substitution(t: Type, mapping: Mapping[str, Type]) -> Type:
    """Replace every TemplateRef present in mapping with its bound type.

    Unmapped template references, concrete types and Top are returned
    unchanged. Union results are re-normalized.
    """
    match t:
        case TemplateRef(name):
            return mapping.get(name, t)
        case Parameterized(base, args):
            return Parameterized(
                base,
                tuple(apply_substitution(arg, mapping) for arg in args),
            )
        case Union(members):
            return make_union(apply_substitution(m, mapping) for m in members)
        case _:
            return t


def iter_templates(t: Type) -> Iterator[str]:
    """Yield the template names referenced by t, outermost first."""
    match t:
        case TemplateRef(name):
            yield name
        case Parameterized(_, args):
            for arg in args:
                yield from iter_templates(arg)
        case Union(members):
            for member in members:
                yield from iter_templates(member)


def free_templates(t: Type) -> frozenset[str]:
    """Names of all template references occurring anywhere in t."""
    return frozenset(iter_templates(t))


def is_ground(t: Type) -> bool:
    """Check whether t mentions no template at all."""
    return not free_templates(t)


def format_type(t: Type) -> str:
    """Format a type the way PHPDoc spells it."""
    match t:
        case Top():
            return TOP_NAME
        case Concrete(name) | TemplateRef(name):
            return name
        case Parameterized(base, args):
            return f"{base}<{', '.join(format_type(a) for a in args)}>"
        case Union(members):
            return "|".join(format_type(m) for m in members)
    return repr(t)
