"""Data models for out-parameter checking."""

from .rule import Rule, RuleSet, RuleConfigError, DEFAULT_RULES, build_rules
from .diagnostic import SourcePosition, CallSite, OutParamError, Diagnostic

__all__ = [
    "Rule",
    "RuleSet",
    "RuleConfigError",
    "DEFAULT_RULES",
    "build_rules",
    "SourcePosition",
    "CallSite",
    "OutParamError",
    "Diagnostic",
]
