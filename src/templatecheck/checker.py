"""Per-site checking facade.

Each site (a call, a method call, a `new` expression or an assignment)
is checked on its own. A failing site produces a failed SiteResult that
names the error; the remaining sites are checked as if nothing happened.

Example usage:
    hierarchy = ClassHierarchy.with_builtins()
    registry = TemplateRegistry(hierarchy)
    registry.declare_template("identity", "T")
    registry.declare_function("identity", (TemplateRef("T"),), TemplateRef("T"))

    checker = Checker(registry, hierarchy)
    report = checker.check_sites([
        CallSite(Location("a.php:3"), "identity", (Concrete("int"),)),
    ])
    if not report.success:
        print(report.format_errors())
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TypeAlias, TypeVar

from templatecheck.config import CheckerConfig
from templatecheck.errors import Location, TemplateCheckError
from templatecheck.hierarchy import NominalHierarchy
from templatecheck.inference import Inferencer, Resolution
from templatecheck.registry import TemplateRegistry
from templatecheck.substitution import Substitution
from templatecheck.types import Type, format_type
from templatecheck.variance import TemplateUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallSite:
    """A call of a declared function."""

    location: Location
    function: str
    arguments: tuple[Type, ...]
    expected_return: Type | None = None
    context: str | None = None


@dataclass(frozen=True)
class MethodCallSite:
    """A method call on a value of type receiver."""

    location: Location
    receiver: Type
    method: str
    arguments: tuple[Type, ...]
    expected_return: Type | None = None
    context: str | None = None


@dataclass(frozen=True)
class InstantiationSite:
    """A `new` expression for a declared class."""

    location: Location
    class_name: str
    arguments: tuple[Type, ...]
    expected: Type | None = None
    context: str | None = None


@dataclass(frozen=True)
class AssignmentSite:
    """A value of type actual flowing into a slot typed expected."""

    location: Location
    expected: Type
    actual: Type
    context: str | None = None


Site: TypeAlias = CallSite | MethodCallSite | InstantiationSite | AssignmentSite

S = TypeVar("S", bound=Site)


@dataclass(frozen=True)
class SiteResult:
    """Outcome of checking one site.

    A failed site never carries a substitution.
    """

    location: Location
    success: bool
    substitution: Substitution | None = None
    resolved_type: Type | None = None
    error: TemplateCheckError | None = None
    skipped: bool = False

    def describe(self) -> str:
        if self.skipped:
            return f"{self.location.path}: skipped"
        if self.error is not None:
            return self.error.format()
        parts = [f"{self.location.path}: ok"]
        if self.substitution:
            parts.append(self.substitution.format())
        if self.resolved_type is not None:
            parts.append(f"-> {format_type(self.resolved_type)}")
        return " ".join(parts)


@dataclass
class Report:
    """Results of a batch of sites, in the order they were checked."""

    results: list[SiteResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def errors(self) -> list[TemplateCheckError]:
        return [r.error for r in self.results if r.error is not None]

    @property
    def failed_sites(self) -> list[Location]:
        return [r.location for r in self.results if r.error is not None]

    def format_errors(self) -> str:
        """Format all errors for display.

        Returns:
            A multi-line string with all errors formatted.

        """
        if self.success:
            return "Template check passed."

        lines = [f"Template check failed with {len(self.errors)} error(s):\n"]
        for i, error in enumerate(self.errors, 1):
            lines.append(f"[{i}] {error.format()}\n")
        skipped = sum(1 for r in self.results if r.skipped)
        if skipped:
            lines.append(f"{skipped} site(s) skipped.")

        return "\n".join(lines)


class Checker:
    """Checks sites against the declarations in a registry."""

    def __init__(
        self,
        registry: TemplateRegistry,
        hierarchy: NominalHierarchy,
        config: CheckerConfig | None = None,
    ) -> None:
        self.registry = registry
        self.config = config or CheckerConfig()
        self.inferencer = Inferencer(registry, hierarchy, self.config)

    def check_call(self, site: CallSite) -> SiteResult:
        return self._run(site, self._call)

    def check_method_call(self, site: MethodCallSite) -> SiteResult:
        return self._run(site, self._method_call)

    def check_instantiation(self, site: InstantiationSite) -> SiteResult:
        return self._run(site, self._instantiation)

    def check_assignment(self, site: AssignmentSite) -> SiteResult:
        return self._run(site, self._assignment)

    def check_site(self, site: Site) -> SiteResult:
        """Check one site of any kind."""
        match site:
            case CallSite():
                return self.check_call(site)
            case MethodCallSite():
                return self.check_method_call(site)
            case InstantiationSite():
                return self.check_instantiation(site)
            case AssignmentSite():
                return self.check_assignment(site)
        msg = f"Unsupported site: {site!r}"
        raise TypeError(msg)

    def check_sites(self, sites: Iterable[Site]) -> Report:
        """Check every site and collect the results.

        With stop_on_first_error set, the sites after the first failure
        are reported as skipped.
        """
        report = Report()
        failed = False
        for site in sites:
            if failed and self.config.stop_on_first_error:
                report.results.append(
                    SiteResult(location=site.location, success=False, skipped=True),
                )
                continue
            result = self.check_site(site)
            report.results.append(result)
            failed = failed or not result.success

        logger.info(
            "Checked %d site(s): %d failed",
            len(report.results),
            len(report.failed_sites),
        )
        return report

    def usage(self, class_name: str) -> dict[str, TemplateUsage]:
        """Classify how the templates of a class are used by its members."""
        declaration = self.registry.class_declaration(class_name)
        return self.inferencer.variance.classify(declaration)

    def _run(
        self,
        site: S,
        check: Callable[[S], SiteResult],
    ) -> SiteResult:
        try:
            result = check(site)
        except TemplateCheckError as exc:
            logger.warning("%s", exc.format())
            return SiteResult(location=site.location, success=False, error=exc)
        logger.info("%s", result.describe())
        return result

    def _call(self, site: CallSite) -> SiteResult:
        signature = self.registry.function(site.function, location=site.location)
        substitution = self.inferencer.infer(
            signature,
            site.arguments,
            expected_return=site.expected_return,
            context=site.context,
            location=site.location,
        )
        return SiteResult(
            location=site.location,
            success=True,
            substitution=substitution,
            resolved_type=substitution.apply(signature.return_type),
        )

    def _method_call(self, site: MethodCallSite) -> SiteResult:
        resolution = self.inferencer.infer_method_call(
            site.receiver,
            site.method,
            site.arguments,
            expected_return=site.expected_return,
            context=site.context,
            location=site.location,
        )
        return self._resolved(site.location, resolution)

    def _instantiation(self, site: InstantiationSite) -> SiteResult:
        resolution = self.inferencer.infer_instantiation(
            site.class_name,
            site.arguments,
            expected=site.expected,
            context=site.context,
            location=site.location,
        )
        return self._resolved(site.location, resolution)

    def _assignment(self, site: AssignmentSite) -> SiteResult:
        for t in (site.expected, site.actual):
            self.registry.validate_type(t, site.context, location=site.location)
        self.inferencer.variance.check_assignment(
            site.expected,
            site.actual,
            rigid=self.registry.scope_bounds(site.context),
            location=site.location,
        )
        return SiteResult(
            location=site.location,
            success=True,
            resolved_type=site.actual,
        )

    @staticmethod
    def _resolved(location: Location, resolution: Resolution) -> SiteResult:
        return SiteResult(
            location=location,
            success=True,
            substitution=resolution.substitution,
            resolved_type=resolution.return_type,
        )
