"""Tests for the per-site checking facade."""

import logging

import pytest

from templatecheck import (
    AssignmentSite,
    BoundViolationError,
    CallSite,
    Checker,
    CheckerConfig,
    ClassHierarchy,
    Concrete,
    InconsistentTemplateError,
    InstantiationSite,
    Location,
    MethodCallSite,
    Parameterized,
    TemplateRef,
    TemplateRegistry,
    UnknownFunctionError,
    Usage,
    VarianceViolationError,
    member_owner,
)

INT = Concrete("int")
STRING = Concrete("string")
ANIMAL = Concrete("Animal")
CAT = Concrete("Cat")
DOG = Concrete("Dog")
DATETIME = Concrete("DateTime")
T = TemplateRef("T")


def at(line: int) -> Location:
    return Location(f"index.php:{line}")


def collection(arg: Concrete | TemplateRef) -> Parameterized:
    return Parameterized("Collection", (arg,))


class TestSingleSites:
    """Each site kind on its own."""

    def test_call(self, checker: Checker) -> None:
        result = checker.check_call(CallSite(at(1), "identity", (INT,)))
        assert result.success
        assert result.substitution == {"T": INT}
        assert result.resolved_type == INT
        assert result.error is None

    def test_failed_call_has_no_substitution(self, checker: Checker) -> None:
        result = checker.check_call(CallSite(at(2), "greater", (INT, INT)))
        assert not result.success
        assert result.substitution is None
        assert isinstance(result.error, BoundViolationError)
        assert result.error.location == at(2)

    def test_unknown_function(self, checker: Checker) -> None:
        result = checker.check_call(CallSite(at(3), "missing", ()))
        assert isinstance(result.error, UnknownFunctionError)
        assert result.error.location == at(3)

    def test_method_call(self, checker: Checker) -> None:
        result = checker.check_method_call(
            MethodCallSite(at(4), collection(CAT), "with", (DOG,)),
        )
        assert result.success
        assert result.substitution == {"U": DOG}
        assert result.resolved_type == collection(DOG)

    def test_instantiation(self, checker: Checker) -> None:
        result = checker.check_instantiation(InstantiationSite(at(5), "Box", (STRING,)))
        assert result.resolved_type == Parameterized("Box", (STRING,))

    def test_assignment(self, checker: Checker) -> None:
        result = checker.check_assignment(
            AssignmentSite(at(6), collection(CAT), Parameterized("Stack", (CAT,))),
        )
        assert result.success

    def test_variance_violation(self, checker: Checker) -> None:
        result = checker.check_assignment(
            AssignmentSite(at(7), collection(ANIMAL), collection(CAT)),
        )
        assert isinstance(result.error, VarianceViolationError)

    def test_assignment_inside_declaration(self, checker: Checker) -> None:
        result = checker.check_assignment(
            AssignmentSite(at(8), collection(T), collection(T), context="f"),
        )
        assert result.success

    def test_call_inside_shadowing_method(
        self,
        checker: Checker,
        registry: TemplateRegistry,
    ) -> None:
        # greater($a, $b) inside Collection::latest<T of DateTime>.
        owner = member_owner("Collection", "latest")
        registry.declare_template(owner, "T", bound=DATETIME)
        registry.declare_method("Collection", "latest", (T, T), T)
        result = checker.check_call(CallSite(at(10), "greater", (T, T), context=owner))
        assert result.success
        assert result.substitution == {"T": T}

        unbounded = checker.check_call(
            CallSite(at(11), "greater", (T, T), context="Collection"),
        )
        assert isinstance(unbounded.error, BoundViolationError)

    def test_describe(self, checker: Checker) -> None:
        result = checker.check_call(CallSite(at(9), "identity", (INT,)))
        assert result.describe() == "index.php:9: ok {T: int} -> int"

    def test_unsupported_site(self, checker: Checker) -> None:
        with pytest.raises(TypeError, match="Unsupported site"):
            checker.check_site("f(1)")  # type: ignore[arg-type]


class TestBatch:
    """check_sites over a mix of passing and failing sites."""

    @pytest.fixture
    def sites(self) -> list:
        return [
            CallSite(at(10), "identity", (INT,)),
            CallSite(at(11), "greater", (DATETIME, Concrete("DateTimeImmutable"))),
            MethodCallSite(at(12), collection(INT), "get", ()),
            CallSite(at(13), "greater", (INT, INT)),
            InstantiationSite(at(14), "Box", (CAT,)),
        ]

    def test_failures_are_isolated(self, checker: Checker, sites: list) -> None:
        report = checker.check_sites(sites)
        assert not report.success
        assert [r.success for r in report.results] == [True, False, True, False, True]
        assert report.failed_sites == [at(11), at(13)]
        assert isinstance(report.errors[0], InconsistentTemplateError)
        assert isinstance(report.errors[1], BoundViolationError)
        assert report.results[2].resolved_type == INT

    def test_stop_on_first_error(
        self,
        registry: TemplateRegistry,
        hierarchy: ClassHierarchy,
        sites: list,
    ) -> None:
        checker = Checker(registry, hierarchy, CheckerConfig(stop_on_first_error=True))
        report = checker.check_sites(sites)
        assert len(report.results) == len(sites)
        assert [r.skipped for r in report.results] == [False, False, True, True, True]
        assert len(report.errors) == 1
        assert "3 site(s) skipped." in report.format_errors()

    def test_format_errors(self, checker: Checker, sites: list) -> None:
        output = checker.check_sites(sites).format_errors()
        assert output.startswith("Template check failed with 2 error(s):")
        assert "[1] index.php:11" in output
        assert "[2] index.php:13" in output

    def test_all_passing(self, checker: Checker) -> None:
        report = checker.check_sites([CallSite(at(20), "f", (STRING,))])
        assert report.success
        assert report.errors == []
        assert report.format_errors() == "Template check passed."

    def test_empty_batch(self, checker: Checker) -> None:
        assert checker.check_sites([]).success

    def test_failures_are_logged(
        self,
        checker: Checker,
        sites: list,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level(logging.INFO, logger="templatecheck"):
            checker.check_sites(sites)
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 2
        assert "Checked 5 site(s): 2 failed" in caplog.text


class TestPropagationAcrossSites:
    """A call inside a generic body resolved at the outer call site."""

    def test_deferred_binding_resolves(self, checker: Checker) -> None:
        inner = checker.check_call(CallSite(at(30), "g", (T,), context="f"))
        outer = checker.check_call(CallSite(at(31), "f", (CAT,)))
        assert inner.substitution is not None
        assert outer.substitution is not None
        assert inner.substitution.deferred == {"U"}
        assert inner.substitution.resolve(outer.substitution) == {"U": CAT}


class TestUsage:
    """Checker.usage exposes template usage of a class."""

    def test_usage(self, checker: Checker) -> None:
        assert checker.usage("Collection")["T"].usage is Usage.BOTH
