"""Variance classification and invariance enforcement.

Every class template is treated as invariant. Consider

    /** @template T */
    class Collection {
        /** @param T $item */
        public function set($item): void {}
        /** @return T */
        public function get() {}
    }

If Collection<Cat> were accepted as a Collection<Animal>, set() would
let callers store a Dog in it; if Collection<Animal> were accepted as a
Collection<Cat>, get() would hand out that Dog as a Cat. The check is
applied to the whole declaration rather than per member. Usage is still
classified so errors can say where a template flows in and out.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from templatecheck.errors import (
    UNKNOWN_LOCATION,
    Location,
    TypeMismatchError,
    VarianceViolationError,
)
from templatecheck.registry import ClassDeclaration, TemplateRegistry
from templatecheck.subtyping import NO_TEMPLATES, Subtyping
from templatecheck.types import (
    Concrete,
    Parameterized,
    TemplateRef,
    Type,
    format_type,
    free_templates,
)

logger = logging.getLogger(__name__)


class Usage(enum.Enum):
    """Where a class template occurs across the class members."""

    UNUSED = "unused"
    PRODUCED_ONLY = "producedOnly"
    CONSUMED_ONLY = "consumedOnly"
    BOTH = "both"


@dataclass(frozen=True)
class TemplateUsage:
    """Members that consume (take) or produce (return) a template."""

    consumed_by: tuple[str, ...] = ()
    produced_by: tuple[str, ...] = ()

    @property
    def usage(self) -> Usage:
        match (bool(self.consumed_by), bool(self.produced_by)):
            case (True, True):
                return Usage.BOTH
            case (True, False):
                return Usage.CONSUMED_ONLY
            case (False, True):
                return Usage.PRODUCED_ONLY
        return Usage.UNUSED

    def merge(self, other: TemplateUsage) -> TemplateUsage:
        return TemplateUsage(
            consumed_by=_unique(self.consumed_by + other.consumed_by),
            produced_by=_unique(self.produced_by + other.produced_by),
        )

    def describe(self) -> str:
        parts = []
        if self.consumed_by:
            parts.append(f"consumed by {', '.join(self.consumed_by)}")
        if self.produced_by:
            parts.append(f"produced by {', '.join(self.produced_by)}")
        return " and ".join(parts) if parts else "unused"


def _unique(names: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))


@dataclass(frozen=True)
class VarianceEnforcer:
    """Rejects assignments that need a co- or contravariant template."""

    registry: TemplateRegistry
    subtyping: Subtyping

    def classify(self, declaration: ClassDeclaration) -> dict[str, TemplateUsage]:
        """Classify the usage of each template of a class.

        Method parameters consume, return types produce, properties do
        both. Templates passed to a generic parent inherit the usage of
        the parent's template at that position.
        """
        names = declaration.signature.template_names
        usages = {name: TemplateUsage() for name in names}

        def record(
            t: Type,
            usage: TemplateUsage,
            shadowed: tuple[str, ...] = (),
        ) -> None:
            for name in (free_templates(t) & usages.keys()) - set(shadowed):
                usages[name] = usages[name].merge(usage)

        for method in declaration.methods:
            label = f"{method.name}()"
            own = method.signature.template_names
            for param in method.signature.parameter_types:
                record(param, TemplateUsage(consumed_by=(label,)), own)
            record(
                method.signature.return_type,
                TemplateUsage(produced_by=(label,)),
                own,
            )

        for prop in declaration.properties:
            label = f"${prop.name}"
            record(prop.type, TemplateUsage(consumed_by=(label,), produced_by=(label,)))

        for parent in declaration.signature.inherited_template_args:
            parent_declaration = self.registry.find_class(parent.base)
            if parent_declaration is None:
                continue
            parent_usages = self.classify(parent_declaration)
            for parent_name, arg in zip(
                parent_declaration.signature.template_names,
                parent.args,
                strict=False,
            ):
                record(arg, parent_usages[parent_name])

        return usages

    def check_assignment(
        self,
        expected: Type,
        actual: Type,
        *,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
        location: Location = UNKNOWN_LOCATION,
    ) -> None:
        """Check that a value of type actual may flow into expected.

        Raises:
            VarianceViolationError: If a generic argument differs from the
                expected one but is related to it by subtyping.
            TypeMismatchError: If the types are otherwise incompatible.

        """
        if self.subtyping.is_subtype(actual, expected, rigid):
            return
        if isinstance(expected, Parameterized):
            self._check_generic(expected, actual, rigid, location)
        msg = f"{format_type(actual)} is not assignable to {format_type(expected)}"
        raise TypeMismatchError(msg, expected, actual, location=location)

    def check_argument(
        self,
        base: str,
        index: int,
        expected: Type,
        actual: Type,
        *,
        rigid: Mapping[str, Type] = NO_TEMPLATES,
        location: Location = UNKNOWN_LOCATION,
    ) -> None:
        """Check one type argument of base against its expected value.

        Raises:
            VarianceViolationError: If the arguments are related but differ.
            TypeMismatchError: If the arguments are unrelated.

        """
        if self.subtyping.equivalent(expected, actual, rigid):
            return
        if self.subtyping.related(expected, actual, rigid):
            raise self._violation(base, index, expected, actual, rigid, location)
        if isinstance(expected, Parameterized):
            self._check_generic(expected, actual, rigid, location)
        msg = (
            f"Type argument {format_type(actual)} of {base} does not match "
            f"{format_type(expected)}"
        )
        raise TypeMismatchError(msg, expected, actual, location=location)

    def _check_generic(
        self,
        expected: Parameterized,
        actual: Type,
        rigid: Mapping[str, Type],
        location: Location,
    ) -> None:
        """Raise a variance error for the first mismatching argument, if any."""
        lifted = self._lift(actual, expected.base, rigid)
        if lifted is None or len(lifted.args) != len(expected.args):
            return
        for index, (want, got) in enumerate(
            zip(expected.args, lifted.args, strict=True),
        ):
            self.check_argument(
                expected.base,
                index,
                want,
                got,
                rigid=rigid,
                location=location,
            )

    def _lift(
        self,
        t: Type,
        base: str,
        rigid: Mapping[str, Type],
    ) -> Parameterized | None:
        match t:
            case TemplateRef(name) if name in rigid:
                return self._lift(rigid[name], base, rigid)
            case Concrete() | Parameterized():
                return self.subtyping.inheritance.as_ancestor(t, base)
        return None

    def _violation(
        self,
        base: str,
        index: int,
        expected: Type,
        actual: Type,
        rigid: Mapping[str, Type],
        location: Location,
    ) -> VarianceViolationError:
        template = f"#{index + 1}"
        detail = "it is invariant"
        declaration = self.registry.find_class(base)
        if declaration is not None and index < len(declaration.signature.templates):
            template = declaration.signature.template_names[index]
            usage = self.classify(declaration)[template]
            if usage.usage is not Usage.UNUSED:
                detail = f"it is {usage.describe()}"

        narrower = self.subtyping.is_subtype(actual, expected, rigid)
        direction = "narrower" if narrower else "wider"
        msg = (
            f"{format_type(actual)} is {direction} than {format_type(expected)} "
            f"for template {template} of {base}, and {detail}"
        )
        logger.debug("Variance violation: %s", msg)
        return VarianceViolationError(
            msg,
            base,
            template,
            expected,
            actual,
            location=location,
        )
