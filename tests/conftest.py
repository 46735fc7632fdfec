"""Shared declarations for the template checker tests."""

import pytest

from templatecheck import (
    Checker,
    ClassHierarchy,
    Concrete,
    Inferencer,
    Parameterized,
    TemplateRef,
    TemplateRegistry,
    make_union,
    member_owner,
)

T = TemplateRef("T")
U = TemplateRef("U")


@pytest.fixture
def hierarchy() -> ClassHierarchy:
    """PHP built-ins plus the DateTime, Animal and Collection families."""
    h = ClassHierarchy.with_builtins()
    h.declare("void")
    h.declare("DateTimeInterface")
    h.declare("DateTime", parents=("DateTimeInterface",))
    h.declare("DateTimeImmutable", parents=("DateTimeInterface",))
    h.declare("Animal")
    h.declare("Cat", parents=("Animal",))
    h.declare("Dog", parents=("Animal",))
    h.declare("Collection", arity=1)
    h.declare("IntCollection", parents=("Collection",))
    h.declare("Stack", parents=("Collection",), arity=1)
    h.declare("Box", arity=1)
    h.declare("Pair", arity=2)
    return h


@pytest.fixture
def registry(hierarchy: ClassHierarchy) -> TemplateRegistry:
    """Functions and classes from the generics examples."""
    r = TemplateRegistry(hierarchy)

    # identity(T $x): T
    r.declare_template("identity", "T")
    r.declare_function("identity", (T,), T)

    # greater(T $a, T $b): T with T of DateTimeInterface
    r.declare_template("greater", "T", bound=Concrete("DateTimeInterface"))
    r.declare_function("greater", (T, T), T)

    # first(array<T> $items): T|null
    r.declare_template("first", "T")
    r.declare_function(
        "first",
        (Parameterized("array", (T,)),),
        make_union((T, Concrete("null"))),
    )

    # f(T $x): T { return g($x); } and g(U $y): U
    r.declare_template("f", "T")
    r.declare_function("f", (T,), T)
    r.declare_template("g", "U")
    r.declare_function("g", (U,), U)

    # Collection<T> with set(T $item): void and get(): T
    r.declare_template("Collection", "T")
    r.declare_class("Collection")
    r.declare_method("Collection", "set", (T,), Concrete("void"))
    r.declare_method("Collection", "get", (), T)
    # with<U>(U $item): Collection<U>
    r.declare_template(member_owner("Collection", "with"), "U")
    r.declare_method("Collection", "with", (U,), Parameterized("Collection", (U,)))

    # IntCollection extends Collection<int>
    r.declare_class(
        "IntCollection",
        inherits=(Parameterized("Collection", (Concrete("int"),)),),
    )

    # Stack<T> extends Collection<T>
    r.declare_template("Stack", "T")
    r.declare_class("Stack", inherits=(Parameterized("Collection", (T,)),))
    r.declare_method("Stack", "push", (T,), Concrete("void"))

    # Box<T> with __construct(T $value)
    r.declare_template("Box", "T")
    r.declare_class("Box", (T,))
    r.declare_property("Box", "value", T)

    return r


@pytest.fixture
def inferencer(registry: TemplateRegistry, hierarchy: ClassHierarchy) -> Inferencer:
    return Inferencer(registry, hierarchy)


@pytest.fixture
def checker(registry: TemplateRegistry, hierarchy: ClassHierarchy) -> Checker:
    return Checker(registry, hierarchy)
