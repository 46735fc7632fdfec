"""Template inference at call and instantiation sites.

Given a signature and the types of the arguments passed at one site,
the Inferencer unifies each declared parameter type with its argument
type and derives a Substitution for the signature's templates:

    /** @template T  @param T $x  @return T */
    function f($x) {}

    f(1);               // T = int
    f(new DateTime());  // T = DateTime

Unification walks declared types structurally. A template binds to the
argument type, a generic type binds its templates through the matching
type arguments (array<T> against array<int> gives T = int), a union
picks the first member the argument matches, and a concrete type only
checks subtyping.

Arguments may mention templates of the enclosing declaration (the
`context`). Those are rigid: the callee's templates bind to them
symbolically and the binding is resolved later, when the enclosing
function is called itself.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TypeAlias
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field

from templatecheck.bounds import BoundChecker
from templatecheck.config import CheckerConfig
from templatecheck.errors import (
    UNKNOWN_LOCATION,
    ArityError,
    Location,
    TemplateCheckError,
    TypeMismatchError,
    UnderconstrainedTemplateError,
    UnknownMethodError,
)
from templatecheck.hierarchy import NominalHierarchy
from templatecheck.inheritance import InheritanceResolver
from templatecheck.registry import Signature, TemplateRegistry
from templatecheck.substitution import Substitution
from templatecheck.subtyping import Subtyping
from templatecheck.types import (
    Concrete,
    Parameterized,
    TemplateRef,
    Type,
    Union,
    apply_substitution,
    format_type,
    free_templates,
    make_union,
)
from templatecheck.variance import VarianceEnforcer

logger = logging.getLogger(__name__)

# Generic base and argument index of an invariant position.
Position: TypeAlias = tuple[str, int]


@dataclass(frozen=True)
class Resolution:
    """Outcome of a method call or instantiation site.

    Attributes:
        substitution: Bindings of the callee's own templates.
        return_type: The declared return type with all bindings applied.
        class_substitution: Bindings of the receiver class's templates.

    """

    substitution: Substitution
    return_type: Type
    class_substitution: Substitution = field(default_factory=Substitution)


@dataclass(frozen=True)
class _Binding:
    type: Type
    # Bound from an invariant position, so it cannot be narrowed.
    exact: bool = False


class Inferencer:
    """Infers template substitutions for call and instantiation sites.

    Args:
        registry: Declared templates, functions and classes.
        hierarchy: Nominal hierarchy collaborator.
        config: Checker options.

    """

    def __init__(
        self,
        registry: TemplateRegistry,
        hierarchy: NominalHierarchy,
        config: CheckerConfig | None = None,
    ) -> None:
        self.registry = registry
        self.hierarchy = hierarchy
        self.config = config or CheckerConfig()
        self.inheritance = InheritanceResolver(registry, hierarchy)
        self.subtyping = Subtyping(hierarchy, self.inheritance)
        self.bounds = BoundChecker(
            self.subtyping,
            strict=self.config.strict_consistency,
        )
        self.variance = VarianceEnforcer(registry, self.subtyping)

    def infer(
        self,
        signature: Signature,
        argument_types: Sequence[Type],
        *,
        expected_return: Type | None = None,
        context: str | None = None,
        location: Location = UNKNOWN_LOCATION,
    ) -> Substitution:
        """Infer the substitution for one call site.

        Args:
            signature: The callee's signature.
            argument_types: Types of the arguments, in call order.
            expected_return: Type the caller expects back; used only for
                templates the arguments leave unbound.
            context: Owner of the declaration the call appears in. Its
                templates may occur in argument types.
            location: Where the call appears, for error reporting.

        Returns:
            A substitution binding every template of the signature.

        Raises:
            ArityError: If the argument count does not fit the signature.
            TypeMismatchError: If an argument does not match its parameter.
            VarianceViolationError: If an invariant type argument differs.
            InconsistentTemplateError: If a template gets conflicting types.
            UnderconstrainedTemplateError: If a template stays unbound.
            BoundViolationError: If a binding escapes its template's bound.
            UnknownTemplateError: If an argument mentions a template that
                the context does not declare.

        """
        renamed, original_names = _rename_templates(
            signature,
            self.registry.scope_bounds(context).keys(),
        )
        substitution = self._infer(
            renamed,
            argument_types,
            expected_return=expected_return,
            context=context,
            location=location,
        )
        return _restore_names(substitution, original_names)

    def _infer(
        self,
        signature: Signature,
        argument_types: Sequence[Type],
        *,
        expected_return: Type | None,
        context: str | None,
        location: Location,
    ) -> Substitution:
        """Infer for a signature whose templates do not clash with context."""
        for index, argument in enumerate(argument_types):
            self.registry.validate_type(
                argument,
                context,
                location=location.index(index),
            )
        self._check_arity(signature, len(argument_types), location)

        rigid = self.registry.scope_bounds(context)
        unifier = _Unifier(self, frozenset(signature.template_names), rigid)
        for index, (declared, actual) in enumerate(
            self._pairs(signature, argument_types),
        ):
            unifier.unify(declared, actual, location.index(index))

        missing = [n for n in signature.template_names if n not in unifier.bindings]
        if missing and expected_return is not None:
            self.registry.validate_type(expected_return, context, location=location)
            declared_return = apply_substitution(
                signature.return_type,
                unifier.current(),
            )
            from_return = _Unifier(self, frozenset(missing), rigid)
            from_return.collect(declared_return, expected_return, location)
            unifier.bindings.update(from_return.bindings)
            missing = [n for n in missing if n not in unifier.bindings]

        if missing:
            msg = (
                f"Unable to infer template type(s) {', '.join(missing)} "
                f"of {signature.owner}"
            )
            raise UnderconstrainedTemplateError(msg, tuple(missing), location=location)

        substitution = Substitution.of(
            {n: unifier.bindings[n].type for n in signature.template_names},
        )
        if self.config.check_bounds:
            for template in signature.templates:
                self.bounds.check_bound(
                    template.name,
                    substitution.apply(template.effective_bound),
                    substitution[template.name],
                    rigid=rigid,
                    location=location,
                )

        logger.debug(
            "Inferred %s for %s at %s",
            substitution.format(),
            signature.owner,
            location.path,
        )
        return substitution

    def infer_instantiation(
        self,
        class_name: str,
        argument_types: Sequence[Type],
        *,
        expected: Type | None = None,
        context: str | None = None,
        location: Location = UNKNOWN_LOCATION,
    ) -> Resolution:
        """Infer the class templates at a `new` expression.

        The constructor's parameters drive inference; the resulting type
        is the class applied to the inferred arguments, e.g.
        `new Box(1)` gives Box<int>.
        """
        declaration = self.registry.class_declaration(class_name, location=location)
        substitution = self.infer(
            declaration.signature,
            argument_types,
            expected_return=expected,
            context=context,
            location=location,
        )
        return Resolution(
            substitution=substitution,
            return_type=substitution.apply(declaration.self_type),
        )

    def infer_method_call(
        self,
        receiver: Type,
        method: str,
        argument_types: Sequence[Type],
        *,
        expected_return: Type | None = None,
        context: str | None = None,
        location: Location = UNKNOWN_LOCATION,
    ) -> Resolution:
        """Infer a call of method on a value of type receiver.

        The class templates come from the receiver's type arguments
        (seen as the declaring class, through inheritance). The method's
        own templates are inferred from the arguments. A receiver written
        without type arguments uses the class templates' bounds.
        """
        rigid = self.registry.scope_bounds(context)
        self.registry.validate_type(receiver, context, location=location)
        receiver_type = self._class_type(receiver, rigid)
        if receiver_type is None:
            msg = f"Cannot call method {method}() on {format_type(receiver)}"
            raise TypeMismatchError(
                msg,
                Concrete("object"),
                receiver,
                location=location,
            )

        class_name = (
            receiver_type.name
            if isinstance(receiver_type, Concrete)
            else receiver_type.base
        )
        found = self.inheritance.find_method(class_name, method)
        if found is None:
            msg = f"Method {class_name}::{method}() is not declared"
            raise UnknownMethodError(msg, class_name, method, location=location)
        declaration, declared_method = found

        lifted = self.inheritance.as_ancestor(receiver_type, declaration.name)
        args = lifted.args if lifted is not None else ()
        class_bindings: dict[str, Type] = {}
        for index, template in enumerate(declaration.signature.templates):
            if index < len(args):
                class_bindings[template.name] = args[index]
            else:
                class_bindings[template.name] = apply_substitution(
                    template.effective_bound,
                    class_bindings,
                )
        class_substitution = Substitution.of(class_bindings)

        # Method templates may shadow class templates or share a name with
        # the caller's templates, which class bindings can bring in.
        renamed, original_names = _rename_templates(
            declared_method.signature,
            class_bindings.keys() | rigid.keys(),
        )
        specialized = _specialize(renamed, class_substitution)
        substitution = self._infer(
            specialized,
            argument_types,
            expected_return=expected_return,
            context=context,
            location=location,
        )
        return Resolution(
            substitution=_restore_names(substitution, original_names),
            return_type=substitution.apply(specialized.return_type),
            class_substitution=class_substitution,
        )

    def _class_type(
        self,
        t: Type,
        rigid: Mapping[str, Type],
    ) -> Concrete | Parameterized | None:
        match t:
            case TemplateRef(name) if name in rigid:
                return self._class_type(rigid[name], rigid)
            case Concrete() | Parameterized():
                return t
        return None

    @staticmethod
    def _check_arity(signature: Signature, count: int, location: Location) -> None:
        total = len(signature.parameter_types)
        required = signature.required_count
        if required <= count and (signature.variadic or count <= total):
            return

        if signature.variadic:
            expected = f"at least {required}"
        elif required == total:
            expected = str(total)
        else:
            expected = f"{required}..{total}"
        msg = f"{signature.owner} expects {expected} argument(s), {count} given"
        raise ArityError(msg, expected, count, location=location)

    @staticmethod
    def _pairs(
        signature: Signature,
        argument_types: Sequence[Type],
    ) -> list[tuple[Type, Type]]:
        params = signature.parameter_types
        return [
            (params[min(index, len(params) - 1)], argument)
            for index, argument in enumerate(argument_types)
        ]


def _rename_templates(
    signature: Signature,
    taken: Collection[str],
) -> tuple[Signature, dict[str, str]]:
    """Give the signature's templates that clash with taken fresh names.

    Returns:
        The renamed signature and a map from fresh to original names.

    """
    clashes = [name for name in signature.template_names if name in taken]
    if not clashes:
        return signature, {}

    used = set(taken) | set(signature.template_names)
    fresh: dict[str, str] = {}
    for name in clashes:
        candidate = f"{name}@{signature.owner}"
        while candidate in used:
            candidate += "'"
        used.add(candidate)
        fresh[name] = candidate

    refs: dict[str, Type] = {old: TemplateRef(new) for old, new in fresh.items()}
    renamed = dataclasses.replace(
        signature,
        templates=tuple(
            dataclasses.replace(
                t,
                name=fresh.get(t.name, t.name),
                bound=(
                    apply_substitution(t.bound, refs) if t.bound is not None else None
                ),
            )
            for t in signature.templates
        ),
        parameter_types=tuple(
            apply_substitution(p, refs) for p in signature.parameter_types
        ),
        return_type=apply_substitution(signature.return_type, refs),
    )
    logger.debug("Renamed templates of %s: %s", signature.owner, fresh)
    return renamed, {new: old for old, new in fresh.items()}


def _restore_names(
    substitution: Substitution,
    original_names: Mapping[str, str],
) -> Substitution:
    if not original_names:
        return substitution
    return Substitution.of(
        {original_names.get(name, name): t for name, t in substitution.items()},
    )


def _specialize(signature: Signature, class_substitution: Substitution) -> Signature:
    """Apply a receiver's class bindings to a method signature."""
    return dataclasses.replace(
        signature,
        templates=tuple(
            dataclasses.replace(t, bound=class_substitution.apply(t.bound))
            if t.bound is not None
            else t
            for t in signature.templates
        ),
        parameter_types=tuple(
            class_substitution.apply(p) for p in signature.parameter_types
        ),
        return_type=class_substitution.apply(signature.return_type),
    )


class _Unifier:
    """Working state of one inference: bindings proposed so far."""

    def __init__(
        self,
        inferencer: Inferencer,
        templates: frozenset[str],
        rigid: Mapping[str, Type],
        bindings: dict[str, _Binding] | None = None,
    ) -> None:
        self.inferencer = inferencer
        self.templates = templates
        self.rigid = rigid
        self.bindings: dict[str, _Binding] = bindings or {}

    def fork(self) -> _Unifier:
        return _Unifier(self.inferencer, self.templates, self.rigid, dict(self.bindings))

    def current(self) -> dict[str, Type]:
        return {name: b.type for name, b in self.bindings.items()}

    def unify(
        self,
        declared: Type,
        actual: Type,
        location: Location,
        position: Position | None = None,
    ) -> None:
        """Unify a declared type with the type of a value passed to it.

        position is set inside the type arguments of a generic, where
        matching is invariant.
        """
        logger.debug(
            "Unify %s with %s at %s",
            format_type(declared),
            format_type(actual),
            location.path,
        )
        if not free_templates(declared) & self.templates:
            self._check_ground(declared, actual, location, position)
            return

        match declared:
            case TemplateRef(name):
                self.propose(name, actual, location, exact=position is not None)
            case Parameterized():
                self._unify_generic(declared, actual, location, position)
            case Union():
                self._unify_union(declared, actual, location, position)

    def propose(
        self,
        name: str,
        actual: Type,
        location: Location,
        *,
        exact: bool = False,
    ) -> None:
        """Record a binding for name, reconciling it with earlier ones."""
        logger.debug("Propose %s = %s", name, format_type(actual))
        existing = self.bindings.get(name)
        if existing is None:
            self.bindings[name] = _Binding(actual, exact)
            return

        inferencer = self.inferencer
        subtyping = inferencer.subtyping
        if existing.exact or exact or inferencer.config.strict_consistency:
            if existing.exact and not exact:
                compatible = subtyping.is_subtype(actual, existing.type, self.rigid)
                kept = existing.type
            elif exact and not existing.exact:
                compatible = subtyping.is_subtype(existing.type, actual, self.rigid)
                kept = actual
            else:
                compatible = subtyping.equivalent(existing.type, actual, self.rigid)
                kept = existing.type
            if inferencer.config.strict_consistency:
                compatible = compatible and subtyping.equivalent(
                    existing.type,
                    actual,
                    self.rigid,
                )
            if not compatible:
                raise inferencer.bounds.conflict(
                    name,
                    existing.type,
                    actual,
                    location=location,
                )
            self.bindings[name] = _Binding(kept, existing.exact or exact)
            return

        merged = inferencer.bounds.reconcile(
            name,
            existing.type,
            actual,
            rigid=self.rigid,
            location=location,
        )
        self.bindings[name] = _Binding(merged)

    def collect(self, declared: Type, expected: Type, location: Location) -> None:
        """Bind templates of a return type from the type the caller expects.

        Only bindings are derived here; whether the returned value fits
        the expected type is the business of the assignment check.
        """
        match declared:
            case TemplateRef(name) if name in self.templates:
                if name not in self.bindings:
                    self.propose(name, expected, location)
            case Parameterized(base, args):
                lifted = self._lift(expected, base)
                if lifted is None or len(lifted.args) != len(args):
                    return
                for arg, expected_arg in zip(args, lifted.args, strict=True):
                    self.collect(arg, expected_arg, location)
            case Union(members):
                bare = _bare_templates(members, self.templates)
                if not bare:
                    return
                wanted = expected.members if isinstance(expected, Union) else (expected,)
                leftovers = [m for m in wanted if m not in members]
                if leftovers:
                    self.collect(bare[0], make_union(leftovers), location)

    def _check_ground(
        self,
        declared: Type,
        actual: Type,
        location: Location,
        position: Position | None,
    ) -> None:
        variance = self.inferencer.variance
        if position is None:
            variance.check_assignment(
                declared,
                actual,
                rigid=self.rigid,
                location=location,
            )
            return
        base, index = position
        variance.check_argument(
            base,
            index,
            declared,
            actual,
            rigid=self.rigid,
            location=location,
        )

    def _unify_generic(
        self,
        declared: Parameterized,
        actual: Type,
        location: Location,
        position: Position | None,
    ) -> None:
        if isinstance(actual, Union):
            for member in actual.members:
                self.unify(declared, member, location, position)
            return

        if position is None:
            lifted = self._lift(actual, declared.base)
        elif isinstance(actual, Parameterized) and actual.base == declared.base:
            lifted = actual
        else:
            lifted = None

        if lifted is None or len(lifted.args) != len(declared.args):
            msg = f"{format_type(actual)} is not a {declared.base}"
            raise TypeMismatchError(msg, declared, actual, location=location)

        for index, (declared_arg, actual_arg) in enumerate(
            zip(declared.args, lifted.args, strict=True),
        ):
            self.unify(declared_arg, actual_arg, location, (declared.base, index))

    def _unify_union(
        self,
        declared: Union,
        actual: Type,
        location: Location,
        position: Position | None,
    ) -> None:
        """Match each member of actual against the members of declared.

        Template-free and generic members are tried first, in declaration
        order. Whatever matches none of them is bound, as one union, to
        the first bare template member.
        """
        bare = _bare_templates(declared.members, self.templates)
        structural = [m for m in declared.members if m not in bare]
        candidates = actual.members if isinstance(actual, Union) else (actual,)

        leftovers = [
            member
            for member in candidates
            if not self._match_any(structural, member, location, position)
        ]
        if not leftovers:
            return
        if not bare:
            msg = (
                f"{format_type(actual)} matches no member of "
                f"{format_type(declared)}"
            )
            raise TypeMismatchError(msg, declared, actual, location=location)
        self.propose(
            bare[0].name,
            make_union(leftovers),
            location,
            exact=position is not None,
        )

    def _match_any(
        self,
        members: list[Type],
        actual: Type,
        location: Location,
        position: Position | None,
    ) -> bool:
        for member in members:
            trial = self.fork()
            try:
                trial.unify(member, actual, location, position)
            except TemplateCheckError as exc:
                logger.debug("Union member %s rejected: %s", format_type(member), exc)
                continue
            self.bindings = trial.bindings
            return True
        return False

    def _lift(self, t: Type, base: str) -> Parameterized | None:
        match t:
            case TemplateRef(name) if name in self.rigid:
                return self._lift(self.rigid[name], base)
            case Concrete() | Parameterized():
                return self.inferencer.inheritance.as_ancestor(t, base)
        return None


def _bare_templates(
    members: tuple[Type, ...],
    templates: frozenset[str],
) -> list[TemplateRef]:
    return [m for m in members if isinstance(m, TemplateRef) and m.name in templates]
