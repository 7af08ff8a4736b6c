"""規則テーブル・コンパイルDBの入力と検査結果の出力。"""

from .compile_db import CompileDatabase, CompileEntry
from .report_writer import ReportWriter
from .rules_loader import RulesLoader, parse_rules_argument

__all__ = [
    "CompileDatabase",
    "CompileEntry",
    "ReportWriter",
    "RulesLoader",
    "parse_rules_argument",
]
