"""Template declarations and the signatures that use them.

The registry is filled once while declarations are parsed and is only
read afterwards. Every declared type is validated against the owner's
template scope and the nominal hierarchy at declaration time, so the
inference code can assume well-formed input.

A function owns its templates. A class owns its templates and shares
them with its members: a method named "Collection::set" sees the
templates of "Collection" in addition to its own.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field

from templatecheck.errors import (
    UNKNOWN_LOCATION,
    DuplicateTemplateError,
    GenericArityError,
    Location,
    TypeMismatchError,
    UnknownClassError,
    UnknownFunctionError,
    UnknownTemplateError,
)
from templatecheck.hierarchy import NominalHierarchy
from templatecheck.types import (
    TOP_NAME,
    Concrete,
    Parameterized,
    TemplateRef,
    Top,
    Type,
    Union,
    free_templates,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateDeclaration:
    """A template name introduced by a function, method or class."""

    name: str
    owner: str
    bound: Type | None = None

    @property
    def effective_bound(self) -> Type:
        """The declared bound, or the implicit top type."""
        return self.bound if self.bound is not None else Top()


@dataclass(frozen=True)
class Signature:
    """Templates, parameter types and return type of a declaration.

    For a class, parameter_types are the constructor's parameters,
    return_type is the class applied to its own templates and
    inherited_template_args lists the generic parents with the
    arguments the class supplies for their templates.
    """

    owner: str
    templates: tuple[TemplateDeclaration, ...]
    parameter_types: tuple[Type, ...]
    return_type: Type
    optional_count: int = 0
    variadic: bool = False
    inherited_template_args: tuple[Parameterized, ...] = ()

    @property
    def template_names(self) -> tuple[str, ...]:
        return tuple(t.name for t in self.templates)

    @property
    def required_count(self) -> int:
        """Number of parameters every call must supply."""
        return len(self.parameter_types) - self.optional_count - int(self.variadic)

    def template(self, name: str) -> TemplateDeclaration:
        """Look up one of this signature's own templates."""
        for template in self.templates:
            if template.name == name:
                return template
        msg = f"Template {name} is not declared on {self.owner}"
        raise UnknownTemplateError(msg, name, self.owner)


@dataclass(frozen=True)
class Method:
    name: str
    signature: Signature


@dataclass(frozen=True)
class Property:
    name: str
    type: Type


@dataclass(frozen=True)
class ClassDeclaration:
    """A generic (or plain) class with its members."""

    name: str
    signature: Signature
    methods: tuple[Method, ...] = ()
    properties: tuple[Property, ...] = ()

    @property
    def self_type(self) -> Type:
        """The class applied to its own templates, e.g. Collection<T>."""
        if not self.signature.templates:
            return Concrete(self.name)
        return Parameterized(
            self.name,
            tuple(TemplateRef(n) for n in self.signature.template_names),
        )

    def method(self, name: str) -> Method | None:
        for method in self.methods:
            if method.name == name:
                return method
        return None


def member_owner(class_name: str, member: str) -> str:
    """Owner name used for templates declared on a class member."""
    return f"{class_name}::{member}"


@dataclass
class TemplateRegistry:
    """Declared templates, function signatures and class declarations.

    Args:
        hierarchy: Nominal hierarchy used to validate class names and
            generic arity.

    """

    hierarchy: NominalHierarchy
    _templates: dict[str, dict[str, TemplateDeclaration]] = field(
        default_factory=dict,
    )
    _parent_scope: dict[str, str] = field(default_factory=dict)
    _functions: dict[str, Signature] = field(default_factory=dict)
    _classes: dict[str, ClassDeclaration] = field(default_factory=dict)

    # Templates

    def declare_template(
        self,
        owner: str,
        name: str,
        bound: Type | None = None,
    ) -> TemplateDeclaration:
        """Declare a template on owner.

        The bound may reference templates declared earlier on the same
        owner (or on the enclosing class, for methods), but not name
        itself. Templates must be declared before the function, class or
        method that owns them.

        Raises:
            DuplicateTemplateError: If owner already declares name, or if
                name would shadow a class template that an earlier bound
                on owner refers to.
            UnknownTemplateError: If the bound references an unknown
                template or the template being declared.
            UnknownClassError: If the bound references an unknown class.
            ValueError: If owner is already registered.

        """
        if self._is_registered(owner):
            msg = f"Cannot declare template {name} on {owner} after {owner} itself"
            raise ValueError(msg)
        declared = self._templates.setdefault(owner, {})
        class_name, sep, _ = owner.partition("::")
        if sep:
            self._parent_scope.setdefault(owner, class_name)
        if name in declared:
            msg = f"Template {name} is already declared on {owner}"
            raise DuplicateTemplateError(msg, name, owner)
        for earlier in declared.values():
            if earlier.bound is not None and name in free_templates(earlier.bound):
                msg = (
                    f"Template {name} on {owner} would shadow the {name} "
                    f"used in the bound of {earlier.name}"
                )
                raise DuplicateTemplateError(msg, name, owner)
        if bound is not None:
            if name in free_templates(bound):
                msg = f"Bound of template {name} on {owner} refers to {name}"
                raise UnknownTemplateError(msg, name, owner)
            self.validate_type(bound, owner)
        template = TemplateDeclaration(name=name, owner=owner, bound=bound)
        declared[name] = template
        logger.debug("Declared template %s on %s", name, owner)
        return template

    def _is_registered(self, owner: str) -> bool:
        class_name, sep, member = owner.partition("::")
        if sep:
            declaration = self._classes.get(class_name)
            return declaration is not None and declaration.method(member) is not None
        return owner in self._functions or owner in self._classes

    def templates_of(self, owner: str) -> tuple[TemplateDeclaration, ...]:
        """Templates declared directly on owner, in declaration order."""
        return tuple(self._templates.get(owner, {}).values())

    def lookup(
        self,
        name: str,
        owner: str,
        *,
        location: Location = UNKNOWN_LOCATION,
    ) -> TemplateDeclaration:
        """Find a template visible from owner.

        Raises:
            UnknownTemplateError: If no visible scope declares name.

        """
        scope: str | None = owner
        while scope is not None:
            template = self._templates.get(scope, {}).get(name)
            if template is not None:
                return template
            scope = self._parent_scope.get(scope)
        msg = f"Template {name} is not declared in the scope of {owner}"
        raise UnknownTemplateError(msg, name, owner, location=location)

    def resolve_bound(self, name: str, owner: str) -> Type:
        """Return the bound of a visible template (Top when unbounded)."""
        return self.lookup(name, owner).effective_bound

    def scope_bounds(self, owner: str | None) -> dict[str, Type]:
        """Bounds of every template visible from owner.

        Inner scopes shadow outer ones.
        """
        chain: list[str] = []
        scope = owner
        while scope is not None:
            chain.append(scope)
            scope = self._parent_scope.get(scope)

        bounds: dict[str, Type] = {}
        for scope_name in reversed(chain):
            for template in self._templates.get(scope_name, {}).values():
                bounds[template.name] = template.effective_bound
        return bounds

    # Validation

    def validate_type(
        self,
        t: Type,
        owner: str | None,
        *,
        location: Location = UNKNOWN_LOCATION,
    ) -> None:
        """Check that t only mentions visible templates and known classes.

        Raises:
            UnknownTemplateError: For a template not visible from owner.
            UnknownClassError: For a class the hierarchy does not know.
            GenericArityError: For a generic applied to the wrong number
                of arguments.

        """
        match t:
            case Top():
                return
            case TemplateRef(name):
                if owner is None:
                    msg = f"Template {name} used outside of any declaration"
                    raise UnknownTemplateError(msg, name, "<global>", location=location)
                self.lookup(name, owner, location=location)
            case Concrete(name):
                self._require_class(name, location)
            case Parameterized(base, args):
                self._require_class(base, location)
                expected = self.hierarchy.arity(base)
                if expected != len(args):
                    msg = f"{base} expects {expected} type argument(s)"
                    raise GenericArityError(
                        msg,
                        str(expected),
                        len(args),
                        base,
                        location=location,
                    )
                for arg in args:
                    self.validate_type(arg, owner, location=location)
            case Union(members):
                for member in members:
                    self.validate_type(member, owner, location=location)

    def _require_class(
        self,
        name: str,
        location: Location = UNKNOWN_LOCATION,
    ) -> None:
        if name == TOP_NAME:
            return
        if not self.hierarchy.class_exists(name):
            msg = f"Unknown class {name}"
            raise UnknownClassError(msg, name, location=location)

    # Functions

    def declare_function(
        self,
        name: str,
        parameter_types: tuple[Type, ...],
        return_type: Type,
        *,
        optional_count: int = 0,
        variadic: bool = False,
    ) -> Signature:
        """Register a function signature.

        Templates must be declared on name beforehand with
        declare_template; the signature keeps the templates declared at
        this point, and declare_template rejects later ones.
        """
        signature = self._build_signature(
            name,
            parameter_types,
            return_type,
            optional_count=optional_count,
            variadic=variadic,
        )
        self._functions[name] = signature
        return signature

    def function(
        self,
        name: str,
        *,
        location: Location = UNKNOWN_LOCATION,
    ) -> Signature:
        """Return a declared function signature.

        Raises:
            UnknownFunctionError: If the function was never declared.

        """
        try:
            return self._functions[name]
        except KeyError:
            msg = f"Function {name} is not declared"
            raise UnknownFunctionError(msg, name, location=location) from None

    # Classes

    def declare_class(
        self,
        name: str,
        constructor: tuple[Type, ...] = (),
        *,
        inherits: tuple[Parameterized, ...] = (),
        optional_count: int = 0,
    ) -> ClassDeclaration:
        """Register a class whose templates were declared on name.

        Args:
            name: Class name, already known to the hierarchy.
            constructor: Constructor parameter types.
            inherits: Generic parents with the arguments this class
                passes to their templates (@extends, @implements, @uses).
            optional_count: Trailing optional constructor parameters.

        Raises:
            GenericArityError: If the hierarchy's arity for name differs
                from the number of declared templates.

        """
        self._require_class(name)
        templates = self.templates_of(name)
        arity = self.hierarchy.arity(name)
        if arity != len(templates):
            msg = f"{name} declares {len(templates)} template(s), expected {arity}"
            raise GenericArityError(msg, str(arity), len(templates), name)

        for parent in inherits:
            self.validate_type(parent, name)
            if not self.hierarchy.is_subtype(name, parent.base):
                msg = f"{name} does not extend {parent.base}"
                raise TypeMismatchError(msg, parent, Concrete(name))

        self_type: Type = (
            Parameterized(name, tuple(TemplateRef(t.name) for t in templates))
            if templates
            else Concrete(name)
        )
        signature = self._build_signature(
            name,
            constructor,
            self_type,
            optional_count=optional_count,
        )
        declaration = ClassDeclaration(
            name=name,
            signature=dataclasses.replace(signature, inherited_template_args=inherits),
        )
        self._classes[name] = declaration
        return declaration

    def declare_method(
        self,
        class_name: str,
        method: str,
        parameter_types: tuple[Type, ...],
        return_type: Type,
        *,
        optional_count: int = 0,
        variadic: bool = False,
    ) -> Method:
        """Add a method to a declared class.

        The method's own templates must already be declared on
        member_owner(class_name, method).
        """
        declaration = self.class_declaration(class_name)
        owner = member_owner(class_name, method)
        self._parent_scope[owner] = class_name
        signature = self._build_signature(
            owner,
            parameter_types,
            return_type,
            optional_count=optional_count,
            variadic=variadic,
        )
        new_method = Method(name=method, signature=signature)
        methods = tuple(m for m in declaration.methods if m.name != method)
        self._classes[class_name] = dataclasses.replace(
            declaration,
            methods=(*methods, new_method),
        )
        return new_method

    def declare_property(self, class_name: str, name: str, t: Type) -> Property:
        """Add a property to a declared class."""
        declaration = self.class_declaration(class_name)
        self.validate_type(t, class_name)
        new_property = Property(name=name, type=t)
        self._classes[class_name] = dataclasses.replace(
            declaration,
            properties=(*declaration.properties, new_property),
        )
        return new_property

    def class_declaration(
        self,
        name: str,
        *,
        location: Location = UNKNOWN_LOCATION,
    ) -> ClassDeclaration:
        """Return a declared class.

        Raises:
            UnknownClassError: If the class was never declared here.

        """
        try:
            return self._classes[name]
        except KeyError:
            msg = f"Class {name} has no generic declaration"
            raise UnknownClassError(msg, name, location=location) from None

    def find_class(self, name: str) -> ClassDeclaration | None:
        return self._classes.get(name)

    def _build_signature(
        self,
        owner: str,
        parameter_types: tuple[Type, ...],
        return_type: Type,
        *,
        optional_count: int = 0,
        variadic: bool = False,
    ) -> Signature:
        if optional_count < 0 or optional_count + int(variadic) > len(parameter_types):
            msg = f"Invalid optional parameter count {optional_count} for {owner}"
            raise ValueError(msg)
        for t in (*parameter_types, return_type):
            self.validate_type(t, owner)
        return Signature(
            owner=owner,
            templates=self.templates_of(owner),
            parameter_types=tuple(parameter_types),
            return_type=return_type,
            optional_count=optional_count,
            variadic=variadic,
        )
