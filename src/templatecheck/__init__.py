"""templatecheck - generic template inference and checking for PHP-style code."""

from templatecheck.bounds import BoundChecker
from templatecheck.checker import (
    AssignmentSite,
    CallSite,
    Checker,
    InstantiationSite,
    MethodCallSite,
    Report,
    Site,
    SiteResult,
)
from templatecheck.config import (
    CheckerConfig,
    configure_logging,
    load_config,
)
from templatecheck.errors import (
    ArityError,
    BoundViolationError,
    DuplicateTemplateError,
    GenericArityError,
    InconsistentTemplateError,
    Location,
    TemplateCheckError,
    TypeMismatchError,
    UnderconstrainedTemplateError,
    UnknownClassError,
    UnknownFunctionError,
    UnknownMethodError,
    UnknownTemplateError,
    VarianceViolationError,
)
from templatecheck.hierarchy import ClassHierarchy, NominalHierarchy
from templatecheck.inference import Inferencer, Resolution
from templatecheck.inheritance import InheritanceResolver
from templatecheck.registry import (
    ClassDeclaration,
    Method,
    Property,
    Signature,
    TemplateDeclaration,
    TemplateRegistry,
    member_owner,
)
from templatecheck.substitution import Substitution
from templatecheck.subtyping import Subtyping
from templatecheck.types import (
    Concrete,
    Parameterized,
    TemplateRef,
    Top,
    Type,
    Union,
    apply_substitution,
    format_type,
    free_templates,
    make_union,
)
from templatecheck.variance import TemplateUsage, Usage, VarianceEnforcer

__all__ = [
    "ArityError",
    "AssignmentSite",
    "BoundChecker",
    "BoundViolationError",
    "CallSite",
    "Checker",
    "CheckerConfig",
    "ClassDeclaration",
    "ClassHierarchy",
    "Concrete",
    "DuplicateTemplateError",
    "GenericArityError",
    "InconsistentTemplateError",
    "Inferencer",
    "InheritanceResolver",
    "InstantiationSite",
    "Location",
    "Method",
    "MethodCallSite",
    "NominalHierarchy",
    "Parameterized",
    "Property",
    "Report",
    "Resolution",
    "Signature",
    "Site",
    "SiteResult",
    "Substitution",
    "Subtyping",
    "TemplateCheckError",
    "TemplateDeclaration",
    "TemplateRef",
    "TemplateRegistry",
    "TemplateUsage",
    "Top",
    "Type",
    "TypeMismatchError",
    "UnderconstrainedTemplateError",
    "Union",
    "UnknownClassError",
    "UnknownFunctionError",
    "UnknownMethodError",
    "UnknownTemplateError",
    "Usage",
    "VarianceEnforcer",
    "VarianceViolationError",
    "apply_substitution",
    "configure_logging",
    "format_type",
    "free_templates",
    "load_config",
    "make_union",
    "member_owner",
]
