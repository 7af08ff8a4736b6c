"""アウトパラメータ検査の呼び出し箇所と指摘情報モデル。"""

from dataclasses import dataclass
from typing import Any, Tuple

from .rule import Rule


@dataclass(frozen=True)
class SourcePosition:
    """ソースコード上の位置（行・列は1始まり、オフセットはバイト単位）。"""
    filename: str
    offset: int
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.filename}:{self.line}:{self.column}"


@dataclass(frozen=True)
class CallSite:
    """規則に一致した関数呼び出し箇所。"""
    callee_name: str
    arguments: Tuple[Any, ...]
    position: SourcePosition
    enclosing_statement_text: str
    rule: Rule


@dataclass(frozen=True)
class OutParamError:
    """ポインタでない値がアウトパラメータに渡されている指摘。

    Attributes:
        position: 指摘対象の引数式の開始位置
        line: 引数を含む文（またはcase節・初期化子要素）のソーステキスト
        method: 呼び出し先の修飾なし関数名
        argument: 指摘対象の引数位置（0始まり）
    """
    position: SourcePosition
    line: str
    method: str
    argument: int

    @property
    def message(self) -> str:
        return f"{self.method} argument {self.argument} must be a pointer"

    def __str__(self) -> str:
        return f"{self.position}\t{self.line}\t// {self.message}"


Diagnostic = OutParamError
