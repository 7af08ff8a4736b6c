"""アウトパラメータ検査の実行と指摘の収集。"""

from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
import logging

from ..models.diagnostic import CallSite, OutParamError, SourcePosition
from ..models.rule import RuleSet
from ..utils.logger import ProgressLogger
from .argument_classifier import is_pointer_safe
from .call_site_enumerator import CallSiteEnumerator
from .clang_analyzer import ClangAnalyzer, CompilationUnit

logger = logging.getLogger(__name__)


class DiagnosticCollector:
    """指摘を発見順に蓄積する。"""

    def __init__(self):
        self._errors: List[OutParamError] = []
        self._seen: Set[Tuple[SourcePosition, int]] = set()

    def add(self, error: OutParamError) -> bool:
        """指摘を追加する。

        Args:
            error: 追加する指摘

        Returns:
            追加された場合True（同じ位置・引数の指摘が既にあればFalse）
        """
        key = (error.position, error.argument)
        if key in self._seen:
            return False
        self._seen.add(key)
        self._errors.append(error)
        return True

    def extend(self, errors: Iterable[OutParamError]) -> None:
        for error in errors:
            self.add(error)

    def results(self) -> Tuple[OutParamError, ...]:
        """蓄積した指摘を発見順に取得する。"""
        return tuple(self._errors)

    def __len__(self) -> int:
        return len(self._errors)


class OutParamChecker:
    """規則に一致する呼び出しの引数を検査し、指摘を生成する。"""

    def __init__(
        self,
        rules: RuleSet,
        analyzer: Optional[ClangAnalyzer] = None
    ):
        """チェッカーを初期化する。

        Args:
            rules: 検査対象の規則テーブル
            analyzer: ファイルをパースするClangAnalyzer（check_filesで使用）
        """
        self.rules = rules
        self.analyzer = analyzer
        self.enumerator = CallSiteEnumerator(rules)

    def check_unit(self, unit: CompilationUnit) -> List[OutParamError]:
        """1つのコンパイル単位を検査する。

        Args:
            unit: 解析対象のコンパイル単位

        Returns:
            発見順の指摘リスト
        """
        collector = DiagnosticCollector()
        for site in self.enumerator.enumerate(unit):
            collector.extend(self._check_site(unit, site))

        logger.debug(f"{unit.path}: {len(collector)} out-parameter error(s)")
        return list(collector.results())

    def _check_site(self, unit: CompilationUnit, site: CallSite) -> List[OutParamError]:
        errors = []
        for index in site.rule.argument_indices:
            # 可変長引数の関数では指定位置の引数が無い場合がある
            if index >= len(site.arguments):
                continue

            argument = site.arguments[index]
            if is_pointer_safe(argument, unit):
                continue

            errors.append(OutParamError(
                position=unit.position(argument),
                line=site.enclosing_statement_text,
                method=site.rule.short_name,
                argument=index
            ))
        return errors

    def run(self, units: Iterable[CompilationUnit]) -> List[OutParamError]:
        """複数のコンパイル単位を与えられた順に検査する。

        Args:
            units: 解析対象のコンパイル単位

        Returns:
            単位の順、単位内はソース順の指摘リスト
        """
        collector = DiagnosticCollector()
        for unit in units:
            collector.extend(self.check_unit(unit))
        return list(collector.results())

    def check_files(
        self,
        paths: Sequence[str],
        jobs: int = 1,
        compile_args: Optional[Dict[str, List[str]]] = None
    ) -> List[OutParamError]:
        """ソースファイルをパースして検査する。

        jobsが2以上の場合はファイル単位で並列に処理し、結果は入力順に連結する。

        Args:
            paths: ソースファイルのパス
            jobs: 並列数
            compile_args: ファイルパスからファイル固有のコンパイラ引数へのマッピング

        Returns:
            指摘リスト

        Raises:
            ValueError: analyzerが設定されていない場合
            ClangParseError: パースに失敗した場合
        """
        if self.analyzer is None:
            raise ValueError("check_files requires a ClangAnalyzer")

        compile_args = compile_args or {}
        progress = ProgressLogger(len(paths), logger, log_interval=10)

        def check_path(path: str) -> List[OutParamError]:
            unit = self.analyzer.parse_file(path, extra_args=compile_args.get(path))
            errors = self.check_unit(unit)
            progress.update(path)
            return errors

        collector = DiagnosticCollector()
        if jobs > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=jobs) as executor:
                for errors in executor.map(check_path, paths):
                    collector.extend(errors)
        else:
            for path in paths:
                collector.extend(check_path(path))

        if paths:
            progress.complete("Checked")
        return list(collector.results())


def run(units: Iterable[CompilationUnit], rules: RuleSet) -> List[OutParamError]:
    """コンパイル単位群を規則テーブルで検査する。"""
    return OutParamChecker(rules).run(units)
