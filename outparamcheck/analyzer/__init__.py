"""libclangを使用したアウトパラメータ検査。"""

from .clang_analyzer import ClangAnalyzer, ClangParseError, CompilationUnit, NodeTag
from .argument_classifier import is_pointer_safe, TypeResolver
from .call_site_enumerator import CallSiteEnumerator
from .checker import DiagnosticCollector, OutParamChecker, run

__all__ = [
    "ClangAnalyzer",
    "ClangParseError",
    "CompilationUnit",
    "NodeTag",
    "is_pointer_safe",
    "TypeResolver",
    "CallSiteEnumerator",
    "DiagnosticCollector",
    "OutParamChecker",
    "run",
]
