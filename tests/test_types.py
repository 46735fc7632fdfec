"""Tests for type terms and substitution application."""

import pytest

from templatecheck import (
    Concrete,
    Parameterized,
    TemplateRef,
    Top,
    Union,
    apply_substitution,
    format_type,
    free_templates,
    make_union,
)

INT = Concrete("int")
STRING = Concrete("string")
NULL = Concrete("null")
T = TemplateRef("T")
U = TemplateRef("U")


class TestConstruction:
    """Tests for building type terms."""

    def test_concrete_requires_name(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            Concrete("")

    def test_union_requires_members(self) -> None:
        with pytest.raises(ValueError, match="at least one member"):
            Union(())

    def test_structural_equality(self) -> None:
        assert Parameterized("array", (INT,)) == Parameterized("array", (INT,))
        assert Parameterized("array", (INT,)) != Parameterized("array", (STRING,))

    def test_union_equality_ignores_order(self) -> None:
        assert Union((INT, NULL)) == Union((NULL, INT))
        assert hash(Union((INT, NULL))) == hash(Union((NULL, INT)))


class TestMakeUnion:
    """Tests for union normalization."""

    def test_single_member_collapses(self) -> None:
        assert make_union([INT]) == INT

    def test_duplicates_collapse(self) -> None:
        assert make_union([INT, INT]) == INT

    def test_nested_unions_flatten(self) -> None:
        result = make_union([INT, make_union([STRING, NULL])])
        assert isinstance(result, Union)
        assert result.members == (INT, STRING, NULL)

    def test_top_absorbs(self) -> None:
        assert make_union([INT, Top()]) == Top()

    def test_keeps_declaration_order(self) -> None:
        result = make_union([T, NULL])
        assert isinstance(result, Union)
        assert result.members == (T, NULL)

    def test_empty_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one member"):
            make_union([])


class TestApplySubstitution:
    """Tests for apply_substitution."""

    def test_replaces_mapped_template(self) -> None:
        assert apply_substitution(T, {"T": INT}) == INT

    def test_unmapped_template_unchanged(self) -> None:
        assert apply_substitution(U, {"T": INT}) == U

    def test_concrete_unchanged(self) -> None:
        assert apply_substitution(STRING, {"T": INT}) == STRING

    def test_recurses_into_parameterized(self) -> None:
        declared = Parameterized("Pair", (T, Parameterized("array", (U,))))
        result = apply_substitution(declared, {"T": INT, "U": STRING})
        assert result == Parameterized(
            "Pair",
            (INT, Parameterized("array", (STRING,))),
        )

    def test_recurses_into_union(self) -> None:
        assert apply_substitution(make_union([T, NULL]), {"T": INT}) == Union(
            (INT, NULL),
        )

    def test_union_renormalizes(self) -> None:
        assert apply_substitution(make_union([T, NULL]), {"T": NULL}) == NULL

    def test_idempotent_on_ground_types(self) -> None:
        mapping = {"T": INT, "U": STRING}
        ground = Parameterized("Pair", (INT, make_union([STRING, NULL])))
        assert apply_substitution(ground, mapping) == ground

    def test_applying_twice_changes_nothing(self) -> None:
        mapping = {"T": INT}
        once = apply_substitution(Parameterized("array", (T,)), mapping)
        assert apply_substitution(once, mapping) == once


class TestFreeTemplates:
    """Tests for free_templates."""

    def test_collects_nested_templates(self) -> None:
        t = Parameterized("Pair", (T, make_union([U, NULL])))
        assert free_templates(t) == {"T", "U"}

    def test_ground_type_has_none(self) -> None:
        assert free_templates(Parameterized("array", (INT,))) == frozenset()


class TestFormatType:
    """Tests for PHPDoc formatting."""

    def test_formats_each_variant(self) -> None:
        assert format_type(Top()) == "mixed"
        assert format_type(INT) == "int"
        assert format_type(T) == "T"
        assert format_type(Parameterized("Pair", (INT, T))) == "Pair<int, T>"
        assert format_type(make_union([T, NULL])) == "T|null"
