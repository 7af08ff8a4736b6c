"""libclangを使用したC/C++ソースコード解析のラッパー。

型検査済みの構文木（TranslationUnit）を読み込み、アウトパラメータ検査の
コアが必要とする問い合わせ（関数定義の列挙、呼び出し先の修飾名、
式の型、ソース位置とテキスト）を提供する。
"""

from enum import Enum
from glob import glob
from pathlib import Path
from typing import Dict, Iterator, List, Optional
import os
import logging
import threading

from ..models.diagnostic import SourcePosition

logger = logging.getLogger(__name__)


class ClangParseError(Exception):
    """Clangパース時のエラー。"""
    pass


class NodeTag(Enum):
    """呼び出し箇所の探索で区別する構文ノードの種類。"""
    COMPOUND = "compound"      # { ... }
    CONTROL = "control"        # if / while / for / switch（括弧付きヘッダーを持つ）
    DO_LOOP = "do_loop"        # do ... while (cond)
    CASE = "case"              # case X: stmt
    LABEL = "label"            # default: stmt / label: stmt
    INIT_LIST = "init_list"    # { .a = x, y }
    CALL = "call"
    OTHER = "other"


# 引数として渡すとポインタになる型（配列は渡す時点でポインタに変換される）
_POINTER_TYPE_KIND_NAMES = (
    "POINTER",
    "BLOCKPOINTER",
    "OBJCOBJECTPOINTER",
    "MEMBERPOINTER",
    "NULLPTR",
    "CONSTANTARRAY",
    "INCOMPLETEARRAY",
    "VARIABLEARRAY",
    "DEPENDENTSIZEDARRAY",
)

# 引数全体がこの綴りのトークン1つならnilリテラルとみなす
NIL_SPELLINGS = frozenset({"nullptr", "NULL", "__null"})


class CompilationUnit:
    """1つのTranslationUnitとそのメインファイルのソースを表す。"""

    def __init__(self, tu, path: str, source: bytes, ci):
        """コンパイル単位を初期化する。

        Args:
            tu: clang.cindex.TranslationUnit
            path: メインファイルのパス
            source: メインファイルの内容（バイト列）
            ci: clang.cindexモジュール
        """
        self.tu = tu
        self.path = path
        self._source = source
        self._ci = ci
        self._main_file = os.path.normpath(path)

        CursorKind = ci.CursorKind
        TypeKind = ci.TypeKind

        self._function_kinds = {
            CursorKind.FUNCTION_DECL,
            CursorKind.CXX_METHOD,
            CursorKind.CONSTRUCTOR,
            CursorKind.DESTRUCTOR,
            CursorKind.CONVERSION_FUNCTION,
            CursorKind.FUNCTION_TEMPLATE,
        }
        self._container_kinds = {
            CursorKind.NAMESPACE,
            CursorKind.CLASS_DECL,
            CursorKind.STRUCT_DECL,
            CursorKind.UNION_DECL,
            CursorKind.CLASS_TEMPLATE,
            CursorKind.CLASS_TEMPLATE_PARTIAL_SPECIALIZATION,
            CursorKind.UNEXPOSED_DECL,  # extern "C" { ... }
        }
        if hasattr(CursorKind, "LINKAGE_SPEC"):
            self._container_kinds.add(CursorKind.LINKAGE_SPEC)

        self._tags = {
            CursorKind.COMPOUND_STMT: NodeTag.COMPOUND,
            CursorKind.IF_STMT: NodeTag.CONTROL,
            CursorKind.WHILE_STMT: NodeTag.CONTROL,
            CursorKind.FOR_STMT: NodeTag.CONTROL,
            CursorKind.SWITCH_STMT: NodeTag.CONTROL,
            CursorKind.CXX_FOR_RANGE_STMT: NodeTag.CONTROL,
            CursorKind.DO_STMT: NodeTag.DO_LOOP,
            CursorKind.CASE_STMT: NodeTag.CASE,
            CursorKind.DEFAULT_STMT: NodeTag.LABEL,
            CursorKind.LABEL_STMT: NodeTag.LABEL,
            CursorKind.INIT_LIST_EXPR: NodeTag.INIT_LIST,
            CursorKind.CALL_EXPR: NodeTag.CALL,
        }

        self._pointer_type_kinds = {
            getattr(TypeKind, name)
            for name in _POINTER_TYPE_KIND_NAMES
            if hasattr(TypeKind, name)
        }

    # ------------------------------------------------------------------
    # 構文木の走査
    # ------------------------------------------------------------------

    def function_definitions(self) -> Iterator:
        """メインファイル内の関数・メソッド定義を宣言順に列挙する。

        名前空間、クラス、extern "C"ブロックの内側も再帰的に探索する。
        インクルードされたヘッダー内の定義は対象外。

        Yields:
            関数定義のカーソル
        """
        yield from self._definitions(self.tu.cursor)

    def _definitions(self, parent) -> Iterator:
        for node in parent.get_children():
            if not self._in_main_file(node):
                continue

            if node.kind in self._function_kinds:
                if node.is_definition():
                    yield node
            elif node.kind in self._container_kinds:
                yield from self._definitions(node)

    def _in_main_file(self, node) -> bool:
        location_file = node.location.file
        if location_file is None:
            return False
        return os.path.normpath(location_file.name) == self._main_file

    def body(self, function) -> List:
        """関数定義の本体（文ノード）を取得する。"""
        return [
            child for child in function.get_children()
            if child.kind.is_statement()
        ]

    def children(self, node) -> List:
        return list(node.get_children())

    def node_tag(self, node) -> NodeTag:
        return self._tags.get(node.kind, NodeTag.OTHER)

    def arguments(self, call) -> List:
        """呼び出しの実引数を取得する。

        ``d("...", x)``のようなメンバ演算子呼び出しでは、libclangが
        オブジェクト式を先頭の引数として返すため取り除く。

        Args:
            call: CALL_EXPRカーソル

        Returns:
            実引数のカーソルのリスト
        """
        args = list(call.get_arguments())
        if args and self._is_member_operator_call(call, args[0]):
            return args[1:]
        return args

    def _is_member_operator_call(self, call, first_argument) -> bool:
        referenced = call.referenced
        if referenced is None or referenced.kind != self._ci.CursorKind.CXX_METHOD:
            return False
        if not referenced.spelling.startswith("operator"):
            return False
        # d.operator()(...) の明示的な呼び出しではオブジェクト式は引数に含まれない
        return first_argument.extent.start.offset == call.extent.start.offset

    def callee_name(self, call) -> Optional[str]:
        """呼び出し先の修飾名を解決する。

        関数宣言に解決できた場合は名前空間・クラスで修飾した名前を返す。
        テンプレート内の依存呼び出しのように解決できない場合は綴りのみを返す。
        関数ポインタ経由の呼び出しはNoneを返す。

        Args:
            call: CALL_EXPRカーソル

        Returns:
            修飾名、解決できない場合はNone
        """
        referenced = call.referenced
        if referenced is None:
            return call.spelling or None

        if referenced.kind not in self._function_kinds:
            return None

        return self.qualified_name(referenced)

    def qualified_name(self, declaration) -> str:
        """宣言カーソルの修飾名（``ns::Class::name``）を構築する。"""
        parts = [declaration.spelling]
        parent = declaration.semantic_parent
        TranslationUnitKind = self._ci.CursorKind.TRANSLATION_UNIT

        while parent is not None and parent.kind != TranslationUnitKind:
            if parent.kind in self._container_kinds and self._is_named_scope(parent):
                parts.append(parent.spelling)
            parent = parent.semantic_parent

        return "::".join(reversed(parts))

    @staticmethod
    def _is_named_scope(scope) -> bool:
        name = scope.spelling
        if not name:
            return False
        # std::__1 などの実装用インライン名前空間と無名の型は修飾に含めない
        if name.startswith("__"):
            return False
        return " " not in name and "(" not in name

    def header_end(self, node) -> Optional[int]:
        """制御文ヘッダー（``if (...)``など）の閉じ括弧の終端オフセットを取得する。

        Args:
            node: 制御文のカーソル

        Returns:
            閉じ括弧直後のバイトオフセット、見つからない場合はNone
        """
        depth = 0
        for token in node.get_tokens():
            if token.spelling == "(":
                depth += 1
            elif token.spelling == ")":
                depth -= 1
                if depth == 0:
                    return token.extent.end.offset
        return None

    def do_tail_start(self, node, body) -> int:
        """do文の``while (...)``部分の開始オフセットを取得する。

        本体がブロックでない場合、本体の範囲は終端の``;``を含まない。
        """
        body_end = self.end_offset(body)
        for token in node.get_tokens():
            if token.spelling == "while" and token.extent.start.offset >= body_end:
                return token.extent.start.offset
        return body_end

    # ------------------------------------------------------------------
    # 位置とテキスト
    # ------------------------------------------------------------------

    def start_offset(self, node) -> int:
        return node.extent.start.offset

    def end_offset(self, node) -> int:
        return node.extent.end.offset

    def position(self, node) -> SourcePosition:
        """ノードの開始位置を取得する。"""
        start = node.extent.start
        filename = start.file.name if start.file is not None else self.path
        return SourcePosition(
            filename=os.path.abspath(filename),
            offset=start.offset,
            line=start.line,
            column=start.column
        )

    def text(self, start: int, end: int) -> str:
        """メインファイルのバイト範囲のテキストを前後の空白を除いて取得する。"""
        return self._source[start:end].decode("utf-8", errors="replace").strip()

    # ------------------------------------------------------------------
    # 型の問い合わせ
    # ------------------------------------------------------------------

    def is_nil(self, expr) -> bool:
        """式がnilリテラル（nullptr / NULL）かを判定する。"""
        peeled = self._peel_implicit(expr)
        if peeled.kind == self._ci.CursorKind.CXX_NULL_PTR_LITERAL_EXPR:
            return True

        spellings = [token.spelling for token in expr.get_tokens()]
        return len(spellings) == 1 and spellings[0] in NIL_SPELLINGS

    def is_address_of(self, expr) -> bool:
        """式が単項``&``演算子かを判定する。"""
        if expr.kind != self._ci.CursorKind.UNARY_OPERATOR:
            return False
        for token in expr.get_tokens():
            return token.spelling == "&"
        return False

    def is_pointer(self, expr) -> bool:
        """式の静的な型がポインタ（または配列）かを判定する。"""
        peeled = self._peel_implicit(expr)
        return peeled.type.get_canonical().kind in self._pointer_type_kinds

    def _peel_implicit(self, expr):
        """ソース範囲を変えない暗黙の変換（ImplicitCastExprなど）を取り除く。"""
        UnexposedExpr = self._ci.CursorKind.UNEXPOSED_EXPR
        node = expr
        while node.kind == UnexposedExpr:
            inner = list(node.get_children())
            if len(inner) != 1:
                break
            child = inner[0]
            if (child.extent.start.offset != node.extent.start.offset
                    or child.extent.end.offset != node.extent.end.offset):
                break
            node = child
        return node


class ClangAnalyzer:
    """libclangを使用したC/C++解析のメインクラス。

    libclangをラップしてCompilationUnitを生成する。
    同じファイルの再パースを避けるため、スレッドセーフなキャッシュを持つ。
    """

    LANGUAGES = ("c", "c++")

    def __init__(
        self,
        include_paths: Optional[List[str]] = None,
        additional_args: Optional[List[str]] = None,
        library_path: Optional[str] = None,
        language: str = "c",
        std: Optional[str] = None,
        strict: bool = False
    ):
        """Clangアナライザーを初期化する。

        Args:
            include_paths: インクルードディレクトリのリスト
            additional_args: 追加のコンパイラ引数
            library_path: libclangライブラリのパス（任意、未指定時は自動検出）
            language: 解析対象の言語（"c" または "c++"）
            std: 言語標準（"c11", "c++17" など）
            strict: Trueの場合、エラー診断のあるファイルをClangParseErrorとする
        """
        if language not in self.LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")

        self._setup_libclang(library_path)

        import clang.cindex as ci
        self._ci = ci

        self.include_paths = include_paths or []
        self.additional_args = additional_args or []
        self.language = language
        self.std = std
        self.strict = strict
        self.index = ci.Index.create()

        # スレッドセーフなCompilationUnitキャッシュ
        self._units: Dict[str, CompilationUnit] = {}
        self._cache_lock = threading.Lock()
        # libclangのIndexは複数スレッドからの同時パースを保証しない
        self._parse_lock = threading.Lock()

        logger.info(
            f"ClangAnalyzer initialized ({language}) with "
            f"{len(self.include_paths)} include paths"
        )

    def _setup_libclang(self, library_path: Optional[str] = None) -> None:
        """libclangライブラリパスを設定する。

        Args:
            library_path: libclangへの明示的なパス（任意）
        """
        import clang.cindex as ci

        if library_path:
            if not ci.Config.loaded:
                ci.Config.set_library_path(library_path)
            return

        # pip install libclangでインストールされたライブラリを使用
        try:
            ci.Index.create()
            logger.debug("libclang loaded successfully from pip package")
        except Exception as e:
            # 一般的なLLVMのインストール先を試す
            candidates = [
                *sorted(glob("/usr/lib/llvm-*/lib"), reverse=True),
                "/usr/local/opt/llvm/lib",
                "/opt/homebrew/opt/llvm/lib",
                r"C:\Program Files\LLVM\bin",
            ]

            for path in candidates:
                if any(Path(path).glob("libclang*")):
                    ci.Config.set_library_path(path)
                    logger.info(f"Using libclang from: {path}")
                    return

            raise ClangParseError(
                f"Failed to load libclang: {e}. "
                "Please install libclang with 'pip install libclang' or install LLVM."
            )

    def _build_compiler_args(self, extra_args: Optional[List[str]] = None) -> List[str]:
        """パース用のコンパイラ引数を構築する。

        Args:
            extra_args: ファイル固有の追加引数（compile_commands.json由来など）

        Returns:
            コンパイラ引数のリスト
        """
        args = ["-x", self.language]
        if self.std:
            args.append(f"-std={self.std}")

        for inc_path in self.include_paths:
            args.extend(["-I", inc_path])

        args.extend(self.additional_args)
        if extra_args:
            args.extend(extra_args)

        return args

    def parse_file(
        self,
        file_path: str,
        extra_args: Optional[List[str]] = None
    ) -> CompilationUnit:
        """ファイルをパースしてCompilationUnitを取得する。

        同じファイルと引数の組み合わせはキャッシュから返す。

        Args:
            file_path: ソースファイルのパス
            extra_args: ファイル固有の追加コンパイラ引数

        Returns:
            CompilationUnit

        Raises:
            ClangParseError: パースに失敗した場合
        """
        abs_path = os.path.abspath(file_path)
        args = self._build_compiler_args(extra_args)
        cache_key = f"{abs_path}:{' '.join(args)}"

        with self._cache_lock:
            if cache_key in self._units:
                return self._units[cache_key]

        try:
            source = Path(abs_path).read_bytes()
        except OSError as e:
            raise ClangParseError(f"Failed to read {abs_path}: {e}")

        unit = self._parse(abs_path, args, source)

        with self._cache_lock:
            self._units[cache_key] = unit

        return unit

    def parse_string(
        self,
        source_code: str,
        filename: str = "input.c",
        extra_args: Optional[List[str]] = None
    ) -> CompilationUnit:
        """文字列からソースコードをパースする。

        Args:
            source_code: C/C++ソースコード
            filename: ソースの仮想ファイル名
            extra_args: 追加コンパイラ引数

        Returns:
            CompilationUnit
        """
        args = self._build_compiler_args(extra_args)
        return self._parse(
            filename,
            args,
            source_code.encode("utf-8"),
            unsaved_files=[(filename, source_code)]
        )

    def _parse(
        self,
        path: str,
        args: List[str],
        source: bytes,
        unsaved_files=None
    ) -> CompilationUnit:
        try:
            with self._parse_lock:
                tu = self.index.parse(
                    path,
                    args=args,
                    unsaved_files=unsaved_files,
                    options=self._ci.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD
                )
        except self._ci.TranslationUnitLoadError as e:
            raise ClangParseError(f"Failed to parse {path}: {e}")

        if tu is None:
            raise ClangParseError(f"Failed to parse {path}: returned None")

        errors = [
            diag for diag in tu.diagnostics
            if diag.severity >= self._ci.Diagnostic.Error
        ]
        for diag in errors:
            logger.warning(f"Parse error in {path}: {diag.spelling}")

        if errors and self.strict:
            raise ClangParseError(
                f"Failed to parse {path}: {len(errors)} error(s), "
                f"first: {errors[0].spelling}"
            )

        logger.debug(f"Parsed {path}")
        return CompilationUnit(tu, path, source, self._ci)
