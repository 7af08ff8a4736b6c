"""アウトパラメータに渡された引数式の判定。"""

from typing import Any, Iterable, Protocol


class TypeResolver(Protocol):
    """引数判定に必要な式の問い合わせ。CompilationUnitが実装する。"""

    def is_nil(self, expr: Any) -> bool: ...

    def is_address_of(self, expr: Any) -> bool: ...

    def is_pointer(self, expr: Any) -> bool: ...

    def children(self, expr: Any) -> Iterable[Any]: ...


def is_pointer_safe(expression: Any, resolver: TypeResolver) -> bool:
    """引数式がポインタとして安全に渡されているかを判定する。

    判定の優先順位:
        1. nilリテラル（出力不要の明示）は安全
        2. 式のどこかに``&expr``を含めば安全（``*&x``も安全と判定される）
        3. 静的な型がポインタなら安全
        4. それ以外は安全でない

    Args:
        expression: 引数式
        resolver: 式の問い合わせ先

    Returns:
        安全であればTrue
    """
    if resolver.is_nil(expression):
        return True

    if contains_address_of(expression, resolver):
        return True

    return resolver.is_pointer(expression)


def contains_address_of(expression: Any, resolver: TypeResolver) -> bool:
    """式またはその部分式に単項``&``演算子が含まれるかを判定する。"""
    pending = [expression]
    while pending:
        node = pending.pop()
        if resolver.is_address_of(node):
            return True
        pending.extend(resolver.children(node))
    return False
