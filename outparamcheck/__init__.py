"""C/C++のアウトパラメータ関数にポインタ以外の値を渡している呼び出しを検出する。"""

from .models import (
    DEFAULT_RULES,
    OutParamError,
    Rule,
    RuleConfigError,
    RuleSet,
    SourcePosition,
    build_rules,
)
from .analyzer import ClangAnalyzer, ClangParseError, OutParamChecker, run

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_RULES",
    "OutParamError",
    "Rule",
    "RuleConfigError",
    "RuleSet",
    "SourcePosition",
    "build_rules",
    "ClangAnalyzer",
    "ClangParseError",
    "OutParamChecker",
    "run",
]
