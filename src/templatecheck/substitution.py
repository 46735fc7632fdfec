"""Substitutions produced by inference.

A Substitution is built once per call or instantiation site and never
changes afterwards. Bindings may be symbolic: inside the body of
`f<T>(T $x)`, calling `g<U>(U $y)` with $x binds U to the template T of
f. Such a binding is deferred until f itself is called; resolve() then
applies f's substitution to it.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from templatecheck.types import Type, apply_substitution, format_type, is_ground


@dataclass(frozen=True, eq=False)
class Substitution(Mapping[str, Type]):
    """Immutable mapping from template names to types.

    Bindings keep the order in which the templates were declared.
    Equality is mapping equality, so a Substitution compares equal to a
    dict with the same bindings.
    """

    bindings: tuple[tuple[str, Type], ...] = ()

    @classmethod
    def of(cls, mapping: Mapping[str, Type]) -> Substitution:
        """Create a substitution from a mapping."""
        return cls(tuple(mapping.items()))

    def __getitem__(self, name: str) -> Type:
        for bound_name, t in self.bindings:
            if bound_name == name:
                return t
        raise KeyError(name)

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.bindings)

    def __len__(self) -> int:
        return len(self.bindings)

    def apply(self, t: Type) -> Type:
        """Replace the templates bound here wherever they occur in t."""
        return apply_substitution(t, dict(self.bindings))

    @property
    def deferred(self) -> frozenset[str]:
        """Names whose binding still mentions templates of an outer scope."""
        return frozenset(name for name, t in self.bindings if not is_ground(t))

    def resolve(self, outer: Substitution) -> Substitution:
        """Resolve deferred bindings with the substitution of an outer site.

        Example:
            inner = Substitution.of({"U": TemplateRef("T")})
            inner.resolve(Substitution.of({"T": Concrete("int")}))
            # -> Substitution.of({"U": Concrete("int")})

        """
        return Substitution(
            tuple((name, outer.apply(t)) for name, t in self.bindings),
        )

    def format(self) -> str:
        """Format as {T: int, U: array<string>}."""
        inner = ", ".join(f"{name}: {format_type(t)}" for name, t in self.bindings)
        return f"{{{inner}}}"
