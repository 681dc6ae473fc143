"""
autoremedy — architecture validation

File: src/autoremedy/verification_plane/architecture/__init__.py

Purpose
- Declarative rules, the rule registry and the plugin-based validator that
  checks proposed contents before they are written.
"""

from autoremedy.verification_plane.architecture.registry import (
    RuleConfigError,
    RuleRegistry,
    default_rules,
    load_rules_yaml,
    synthesize_rules,
)
from autoremedy.verification_plane.architecture.rules import (
    ArchitectureRule,
    ArchitectureViolation,
    ExportNamingRule,
    FileUnderReview,
    ForbiddenContentRule,
    ForbiddenImportRule,
    RequiredImportRule,
    Severity,
)
from autoremedy.verification_plane.architecture.validator import (
    ArchitectureValidator,
    ContractPlugin,
    DataFlowConstraint,
    DataFlowPlugin,
    RuleBasedPlugin,
    ValidationReport,
    ValidatorPlugin,
    build_registry,
    build_validator,
)

__all__ = [
    "ArchitectureRule",
    "ArchitectureValidator",
    "ArchitectureViolation",
    "ContractPlugin",
    "DataFlowConstraint",
    "DataFlowPlugin",
    "ExportNamingRule",
    "FileUnderReview",
    "ForbiddenContentRule",
    "ForbiddenImportRule",
    "RequiredImportRule",
    "RuleBasedPlugin",
    "RuleConfigError",
    "RuleRegistry",
    "Severity",
    "ValidationReport",
    "ValidatorPlugin",
    "build_registry",
    "build_validator",
    "default_rules",
    "load_rules_yaml",
    "synthesize_rules",
]
