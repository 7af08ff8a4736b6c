"""compile_commands.json reader for per-file parse arguments."""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
from pathlib import Path
import json
import logging
import shlex

logger = logging.getLogger(__name__)


@dataclass
class CompileEntry:
    """compile_commands.jsonの1エントリ。

    Attributes:
        file: ソースファイルの絶対パス
        directory: コンパイル時の作業ディレクトリ
        arguments: パースに必要な引数のみ（-I, -D, -std= など）
    """
    file: str
    directory: str
    arguments: List[str] = field(default_factory=list)


class CompileDatabase:
    """compile_commands.json からファイルごとのコンパイラ引数を取得する。"""

    # 値を次の引数に取るフラグ
    FLAGS_WITH_VALUE = ("-I", "-D", "-U", "-include", "-isystem", "-iquote", "-x")
    # パス値を持つフラグ（相対パスはdirectory基準で解決する）
    PATH_FLAGS = ("-I", "-include", "-isystem", "-iquote")

    def __init__(self, entries: Optional[List[CompileEntry]] = None):
        self.entries: Dict[str, CompileEntry] = {}
        for entry in entries or []:
            self.entries[entry.file] = entry

    @staticmethod
    def find(project_root: str) -> Optional[Path]:
        """一般的なビルドディレクトリから compile_commands.json を検索する。

        Args:
            project_root: プロジェクトのルートディレクトリ

        Returns:
            compile_commands.json のパス、見つからない場合は None
        """
        root = Path(project_root)
        candidates = [
            root / "build" / "compile_commands.json",
            root / "cmake-build-debug" / "compile_commands.json",
            root / "cmake-build-release" / "compile_commands.json",
            root / "out" / "build" / "compile_commands.json",
            root / "compile_commands.json",
        ]
        for path in candidates:
            if path.exists():
                return path
        return None

    @classmethod
    def load(cls, path: str) -> "CompileDatabase":
        """compile_commands.json を読み込む。

        Args:
            path: compile_commands.json のパス

        Returns:
            CompileDatabase

        Raises:
            ValueError: JSONが不正な場合
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse {path}: {e}")

        entries = []
        for item in data:
            directory = Path(item.get("directory", "."))
            source = Path(item.get("file", ""))
            if not source.is_absolute():
                source = directory / source

            command = item.get("arguments") or shlex.split(item.get("command", ""))
            entries.append(CompileEntry(
                file=str(source.resolve()),
                directory=str(directory),
                arguments=cls._filter_arguments(command, directory)
            ))

        logger.info(f"Loaded {len(entries)} entries from {path}")
        return cls(entries)

    @classmethod
    def _filter_arguments(cls, command: List[str], directory: Path) -> List[str]:
        """コマンドラインからパースに関係するフラグだけを抽出する。"""
        args: List[str] = []
        i = 1  # 先頭はコンパイラ
        while i < len(command):
            arg = command[i]
            flag = next(
                (f for f in cls.FLAGS_WITH_VALUE if arg == f or
                 (arg.startswith(f) and len(f) == 2)),
                None
            )

            if arg.startswith("-std="):
                args.append(arg)
            elif flag is not None:
                # -I/path と -I /path の両方に対応
                if arg == flag:
                    if i + 1 >= len(command):
                        break
                    i += 1
                    value = command[i]
                else:
                    value = arg[len(flag):]

                if flag in cls.PATH_FLAGS and not Path(value).is_absolute():
                    value = str((directory / value).resolve())
                args.extend([flag, value])
            i += 1

        return args

    def arguments_for(self, file_path: str) -> Optional[List[str]]:
        """ファイルのパース用引数を取得する。"""
        entry = self.entries.get(str(Path(file_path).resolve()))
        return entry.arguments if entry else None

    def files(self) -> List[str]:
        return list(self.entries)

    def __iter__(self) -> Iterator[CompileEntry]:
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)
