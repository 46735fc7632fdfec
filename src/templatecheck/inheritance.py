"""Template propagation through @extends, @implements and @uses.

Given IntCollection declared with `@extends Collection<int>`, the
resolver answers "what is IntCollection when seen as a Collection?"
with Collection<int>. Arguments flow through chains of generic parents:
with `Stack<U> @extends Collection<U>`, Stack<int> seen as a Collection
is Collection<int>.
"""

from __future__ import annotations

from dataclasses import dataclass

from templatecheck.hierarchy import NominalHierarchy
from templatecheck.registry import ClassDeclaration, Method, TemplateRegistry
from templatecheck.types import (
    Concrete,
    Parameterized,
    Type,
    apply_substitution,
)


@dataclass(frozen=True)
class InheritanceResolver:
    """Lifts class types to their generic ancestors."""

    registry: TemplateRegistry
    hierarchy: NominalHierarchy

    def as_ancestor(self, t: Type, base: str) -> Parameterized | None:
        """View t as an instance of base.

        Args:
            t: A Concrete or Parameterized class type.
            base: Name of the ancestor to lift to.

        Returns:
            base applied to the arguments t supplies for it, or None when
            t does not extend base through a declared generic parent.

        """
        match t:
            case Concrete(name):
                args: tuple[Type, ...] = ()
            case Parameterized(name, args):
                pass
            case _:
                return None

        if name == base:
            return Parameterized(base, args)
        if not self.hierarchy.is_subtype(name, base):
            return None

        declaration = self.registry.find_class(name)
        if declaration is None:
            return None

        mapping = dict(zip(declaration.signature.template_names, args, strict=False))
        for parent in declaration.signature.inherited_template_args:
            lifted = self.as_ancestor(apply_substitution(parent, mapping), base)
            if lifted is not None:
                return lifted
        return None

    def find_method(
        self,
        class_name: str,
        method: str,
    ) -> tuple[ClassDeclaration, Method] | None:
        """Find the class that declares method, starting at class_name.

        The class itself is searched first, then its generic parents in
        the order they were declared.
        """
        declaration = self.registry.find_class(class_name)
        if declaration is None:
            return None
        found = declaration.method(method)
        if found is not None:
            return declaration, found
        for parent in declaration.signature.inherited_template_args:
            result = self.find_method(parent.base, method)
            if result is not None:
                return result
        return None
