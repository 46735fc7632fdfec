"""Nominal type hierarchy collaborator.

The checker never walks class hierarchies itself. It asks a
NominalHierarchy whether a class exists, how many type arguments a
generic class takes and whether one name is a subtype of another.
ClassHierarchy is an in-memory implementation fed by whatever parses
the host language's class declarations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from templatecheck.errors import UnknownClassError
from templatecheck.types import TOP_NAME

BUILTIN_SCALARS = ("int", "float", "string", "bool", "null")


class NominalHierarchy(Protocol):
    """Queries the checker needs from the host language's class graph."""

    def class_exists(self, name: str) -> bool: ...

    def is_subtype(self, sub: str, sup: str) -> bool: ...

    def arity(self, name: str) -> int: ...


@dataclass
class ClassHierarchy:
    """Directed subtype relation between nominal type names.

    Each class lists its direct parents (superclass, interfaces, traits);
    subtyping is the reflexive-transitive closure of that relation.
    """

    _parents: dict[str, tuple[str, ...]] = field(default_factory=dict)
    _arity: dict[str, int] = field(default_factory=dict)

    @classmethod
    def with_builtins(cls) -> ClassHierarchy:
        """Create a hierarchy pre-populated with PHP's built-in types."""
        hierarchy = cls()
        hierarchy.declare(TOP_NAME)
        for scalar in BUILTIN_SCALARS:
            hierarchy.declare(scalar)
        hierarchy.declare("object")
        hierarchy.declare("iterable", arity=1)
        hierarchy.declare("array", parents=("iterable",), arity=1)
        hierarchy.declare("Traversable")
        return hierarchy

    def declare(
        self,
        name: str,
        parents: tuple[str, ...] = (),
        arity: int = 0,
    ) -> None:
        """Register a class with its direct parents.

        Args:
            name: The class, interface or trait name.
            parents: Direct supertypes; each must already be declared.
            arity: Number of template parameters the class takes.

        Raises:
            UnknownClassError: If a parent has not been declared.
            ValueError: If the class is already declared.

        """
        if name in self._parents:
            msg = f"Class {name} is already declared"
            raise ValueError(msg)
        for parent in parents:
            if parent not in self._parents:
                msg = f"Unknown parent class {parent} of {name}"
                raise UnknownClassError(msg, parent)
        self._parents[name] = tuple(parents)
        self._arity[name] = arity

    def class_exists(self, name: str) -> bool:
        return name in self._parents

    def arity(self, name: str) -> int:
        """Return the number of template parameters of a class."""
        if name not in self._arity:
            msg = f"Unknown class {name}"
            raise UnknownClassError(msg, name)
        return self._arity[name]

    def parents(self, name: str) -> tuple[str, ...]:
        """Return the direct parents of a class."""
        return self._parents.get(name, ())

    def is_subtype(self, sub: str, sup: str) -> bool:
        """Check whether sub is sup or (transitively) extends it."""
        if sub == sup or sup == TOP_NAME:
            return True
        seen: set[str] = set()
        pending = list(self._parents.get(sub, ()))
        while pending:
            current = pending.pop()
            if current == sup:
                return True
            if current in seen:
                continue
            seen.add(current)
            pending.extend(self._parents.get(current, ()))
        return False
