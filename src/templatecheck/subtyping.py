"""Subtype relation over type terms.

Nominal questions (is DateTime a DateTimeInterface?) are delegated to
the hierarchy. Generic arguments are invariant: Collection<Cat> is not a
Collection<Animal>, whatever the relation between Cat and Animal.

Template references are rigid here. A template that belongs to the
enclosing declaration is only known through its bound, passed in as
`rigid`; inside the body of `f<T of Animal>`, T is a subtype of Animal
and of nothing narrower.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from templatecheck.hierarchy import NominalHierarchy
from templatecheck.inheritance import InheritanceResolver
from templatecheck.types import (
    TOP_NAME,
    Concrete,
    Parameterized,
    TemplateRef,
    Top,
    Type,
    Union,
)

NO_TEMPLATES: Mapping[str, Type] = {}


def is_top(t: Type) -> bool:
    """Check whether t is the top type (mixed)."""
    return isinstance(t, Top) or t == Concrete(TOP_NAME)


@dataclass(frozen=True)
class Subtyping:
    """Structural subtyping backed by a nominal hierarchy."""

    hierarchy: NominalHierarchy
    inheritance: InheritanceResolver

    def is_subtype(  # noqa: PLR0911
        self,
        sub: Type,
        sup: Type,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
    ) -> bool:
        """Check if sub is a subtype of sup.

        Args:
            sub: The potential subtype.
            sup: The potential supertype.
            rigid: Bounds of the templates in scope at the program point.

        Returns:
            True if a value of type sub may be used where sup is expected.

        """
        if sub == sup or is_top(sup):
            return True

        match (sub, sup):
            case (Top(), _):
                return False
            case (Union(members), _):
                return all(self.is_subtype(m, sup, rigid) for m in members)
            case (_, Union(members)):
                return any(self.is_subtype(sub, m, rigid) for m in members)
            case (TemplateRef(name), _):
                if name not in rigid:
                    return False
                return self.is_subtype(rigid[name], sup, rigid)
            case (_, TemplateRef(_)):
                return False
            case (Concrete(a) | Parameterized(a, _), Concrete(b)):
                return self.hierarchy.is_subtype(a, b)
            case (Concrete() | Parameterized(), Parameterized(base, args)):
                lifted = self.inheritance.as_ancestor(sub, base)
                if lifted is None or len(lifted.args) != len(args):
                    return False
                return all(
                    self.equivalent(a1, a2, rigid)
                    for a1, a2 in zip(lifted.args, args, strict=True)
                )

        return False

    def equivalent(
        self,
        a: Type,
        b: Type,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
    ) -> bool:
        """Check if a and b denote the same type (mutual subtypes)."""
        return a == b or (
            self.is_subtype(a, b, rigid) and self.is_subtype(b, a, rigid)
        )

    def narrowest(
        self,
        a: Type,
        b: Type,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
    ) -> Type | None:
        """Most specific of two related types, None if they are unrelated."""
        if a == b or self.is_subtype(a, b, rigid):
            return a
        if self.is_subtype(b, a, rigid):
            return b
        return None

    def related(
        self,
        a: Type,
        b: Type,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
    ) -> bool:
        """Check if either type is a subtype of the other."""
        return self.narrowest(a, b, rigid) is not None
