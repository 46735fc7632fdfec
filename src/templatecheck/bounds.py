"""Bound and consistency checks for inferred template bindings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from templatecheck.errors import (
    UNKNOWN_LOCATION,
    BoundViolationError,
    InconsistentTemplateError,
    Location,
)
from templatecheck.subtyping import NO_TEMPLATES, Subtyping
from templatecheck.types import Type, format_type


@dataclass(frozen=True)
class BoundChecker:
    """Validates bindings against bounds and against each other.

    With strict=True two bindings of one template must be structurally
    equal; otherwise the narrower of two related bindings wins.
    """

    subtyping: Subtyping
    strict: bool = False

    def check_bound(
        self,
        template: str,
        bound: Type,
        inferred: Type,
        *,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
        location: Location = UNKNOWN_LOCATION,
    ) -> None:
        """Check that inferred is a subtype of bound.

        Raises:
            BoundViolationError: If the inferred type escapes the bound.

        """
        if self.subtyping.is_subtype(inferred, bound, rigid):
            return
        msg = (
            f"Template {template} inferred as {format_type(inferred)}, "
            f"which is not a subtype of {format_type(bound)}"
        )
        raise BoundViolationError(
            msg,
            template,
            bound,
            inferred,
            location=location,
        )

    def check_consistency(
        self,
        a: Type,
        b: Type,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
    ) -> bool:
        """Check whether two bindings of one template can coexist."""
        if self.strict:
            return self.subtyping.equivalent(a, b, rigid)
        return self.subtyping.related(a, b, rigid)

    def reconcile(
        self,
        template: str,
        first: Type,
        second: Type,
        *,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
        location: Location = UNKNOWN_LOCATION,
    ) -> Type:
        """Merge two bindings of one template into the narrowest type.

        Raises:
            InconsistentTemplateError: If the bindings are not consistent.

        """
        if self.check_consistency(first, second, rigid):
            narrowest = self.subtyping.narrowest(first, second, rigid)
            if narrowest is not None:
                return narrowest
        raise self.conflict(template, first, second, location=location)

    @staticmethod
    def conflict(
        template: str,
        first: Type,
        second: Type,
        *,
        location: Location = UNKNOWN_LOCATION,
    ) -> InconsistentTemplateError:
        """Build the error for two incompatible bindings."""
        msg = (
            f"Template {template} is bound to both {format_type(first)} "
            f"and {format_type(second)}"
        )
        return InconsistentTemplateError(
            msg,
            template,
            first,
            second,
            location=location,
        )
