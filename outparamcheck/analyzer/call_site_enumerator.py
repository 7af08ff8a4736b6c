"""関数本体を走査して規則に一致する呼び出し箇所を列挙する。"""

from typing import Iterator, List, NamedTuple, Optional
import logging

from ..models.diagnostic import CallSite
from ..models.rule import RuleSet
from .clang_analyzer import CompilationUnit, NodeTag

logger = logging.getLogger(__name__)


class Reportable(NamedTuple):
    """指摘に表示する構文単位（文・case節・初期化子要素）のバイト範囲。"""
    start: int
    end: int


class CallSiteEnumerator:
    """全ての関数・メソッド本体から規則に一致するCALL_EXPRを探す。

    走査中は最も内側の「表示単位」（ブロック直下の文、制御文のヘッダー、
    case節、初期化子リストの要素）を保持し、呼び出しが見つかった時点で
    そのソーステキストをCallSiteに記録する。
    """

    def __init__(self, rules: RuleSet):
        """列挙器を初期化する。

        Args:
            rules: 検査対象の規則テーブル
        """
        self.rules = rules

    def enumerate(self, unit: CompilationUnit) -> Iterator[CallSite]:
        """コンパイル単位内の呼び出し箇所をソース順に列挙する。

        Args:
            unit: 解析対象のコンパイル単位

        Yields:
            規則に一致した呼び出し箇所
        """
        for function in unit.function_definitions():
            logger.debug(f"Scanning {function.spelling} in {unit.path}")
            for statement in unit.body(function):
                yield from self._visit(unit, statement, self._span(unit, statement))

    def _visit(
        self,
        unit: CompilationUnit,
        node,
        reportable: Optional[Reportable]
    ) -> Iterator[CallSite]:
        tag = unit.node_tag(node)

        if tag is NodeTag.CALL:
            site = self._match(unit, node, reportable)
            if site is not None:
                yield site
            yield from self._visit_children(unit, unit.children(node), reportable)

        elif tag is NodeTag.COMPOUND or tag is NodeTag.LABEL or tag is NodeTag.INIT_LIST:
            for child in unit.children(node):
                yield from self._visit(unit, child, self._span(unit, child))

        elif tag is NodeTag.CONTROL:
            header_end = unit.header_end(node)
            header = None
            if header_end is not None:
                header = Reportable(unit.start_offset(node), header_end)

            for child in unit.children(node):
                if header is not None and unit.start_offset(child) < header_end:
                    yield from self._visit(unit, child, header)
                else:
                    yield from self._visit(unit, child, self._span(unit, child))

        elif tag is NodeTag.DO_LOOP:
            # 子ノードは本体、条件の順に並ぶ
            children = unit.children(node)
            if not children:
                return
            body = children[0]
            yield from self._visit(unit, body, self._span(unit, body))
            tail = Reportable(unit.do_tail_start(node, body), unit.end_offset(node))
            yield from self._visit_children(unit, children[1:], tail)

        elif tag is NodeTag.CASE:
            children = unit.children(node)
            if not children:
                return
            body = children[-1]
            label = Reportable(unit.start_offset(node), unit.start_offset(body))
            yield from self._visit_children(unit, children[:-1], label)
            yield from self._visit(unit, body, self._span(unit, body))

        else:
            yield from self._visit_children(unit, unit.children(node), reportable)

    def _visit_children(
        self,
        unit: CompilationUnit,
        children: List,
        reportable: Optional[Reportable]
    ) -> Iterator[CallSite]:
        for child in children:
            yield from self._visit(unit, child, reportable)

    def _match(
        self,
        unit: CompilationUnit,
        call,
        reportable: Optional[Reportable]
    ) -> Optional[CallSite]:
        """呼び出しが規則に一致すればCallSiteを生成する。"""
        callee_name = unit.callee_name(call)
        rule = self.rules.lookup(callee_name)
        if rule is None:
            return None

        if reportable is None:
            reportable = self._span(unit, call)

        return CallSite(
            callee_name=callee_name,
            arguments=tuple(unit.arguments(call)),
            position=unit.position(call),
            enclosing_statement_text=unit.text(reportable.start, reportable.end),
            rule=rule
        )

    @staticmethod
    def _span(unit: CompilationUnit, node) -> Reportable:
        return Reportable(unit.start_offset(node), unit.end_offset(node))
