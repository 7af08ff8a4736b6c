"""設定管理モジュール。"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
from pathlib import Path
import logging

import yaml

from .models.rule import DEFAULT_RULES, RuleConfigError, RuleSet, build_rules

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".c", ".cc", ".cpp", ".cxx")


@dataclass
class Config:
    """アプリケーション設定。"""

    # C/C++パース用インクルードパス
    include_paths: List[str] = field(default_factory=list)

    # 検査対象のソースディレクトリとファイル
    source_directories: List[str] = field(default_factory=list)
    source_files: List[str] = field(default_factory=list)

    # パース設定
    compiler_args: List[str] = field(default_factory=list)
    language: str = "c"
    std: Optional[str] = None
    libclang_path: Optional[str] = None
    compile_commands: Optional[str] = None
    strict: bool = False

    # 規則設定
    rules: Dict[str, List[int]] = field(default_factory=dict)
    rules_source: Dict[str, Any] = field(default_factory=dict)
    use_defaults: bool = True

    # 処理設定
    jobs: int = 1
    report_file: Optional[str] = None

    # ロギング設定
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    @classmethod
    def from_yaml(cls, file_path: str) -> "Config":
        """YAMLファイルから設定を読み込む。

        Args:
            file_path: YAML設定ファイルのパス

        Returns:
            Configインスタンス

        Raises:
            RuleConfigError: YAMLが不正、またはマッピングでない場合
        """
        with open(file_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise RuleConfigError(f"Invalid YAML in {file_path}: {e}")

        config = cls.from_dict(data)
        logger.info(f"Configuration loaded from {file_path}")
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """辞書から設定を作成する。未知のキーは警告して無視する。

        Args:
            data: 設定辞書

        Returns:
            Configインスタンス

        Raises:
            RuleConfigError: dataがマッピングでない場合
        """
        if not isinstance(data, dict):
            raise RuleConfigError(
                f"Configuration must be a mapping, got {type(data).__name__}"
            )

        config = cls()

        for key, value in data.items():
            if hasattr(config, key):
                setattr(config, key, value)
            else:
                logger.warning(f"Unknown configuration key: {key}")

        # 'rules'は {name: [indices]} 形式のみ（値がNoneなら空とみなす）
        config.rules = config.rules or {}
        config.rules_source = config.rules_source or {}
        return config

    def validate(self) -> List[str]:
        """設定を検証する。

        Returns:
            検証エラーのリスト（有効な場合は空）
        """
        errors = []

        if self.language not in ("c", "c++"):
            errors.append(f"language must be 'c' or 'c++': {self.language}")

        if not isinstance(self.jobs, int) or self.jobs < 1:
            errors.append(f"jobs must be a positive integer: {self.jobs}")

        if not isinstance(self.rules, dict):
            errors.append("rules must be a mapping of function name to argument indices")

        for path in self.include_paths:
            if not Path(path).exists():
                logger.warning(f"Include path does not exist: {path}")

        for path in self.source_directories:
            if not Path(path).is_dir():
                errors.append(f"Source directory does not exist: {path}")

        for path in self.source_files:
            if not Path(path).is_file():
                errors.append(f"Source file does not exist: {path}")

        if self.compile_commands and not Path(self.compile_commands).exists():
            errors.append(f"compile_commands.json not found: {self.compile_commands}")

        return errors

    def build_rule_set(self) -> RuleSet:
        """既定の規則、外部規則テーブル、インライン規則をマージする。

        後から適用したものが優先される（インライン規則が最優先）。

        Returns:
            RuleSet

        Raises:
            RuleConfigError: 不正な規則が含まれる場合
        """
        from .io.rules_loader import RulesLoader

        overrides: Dict[str, Any] = {}
        if self.rules_source:
            overrides.update(RulesLoader().load(self.rules_source))
        overrides.update(self.rules)

        defaults = DEFAULT_RULES if self.use_defaults else {}
        return build_rules(defaults, overrides)

    def to_dict(self) -> dict:
        """設定を辞書に変換する。

        Returns:
            辞書形式の設定
        """
        return {
            "include_paths": self.include_paths,
            "source_directories": self.source_directories,
            "source_files": self.source_files,
            "compiler_args": self.compiler_args,
            "language": self.language,
            "std": self.std,
            "libclang_path": self.libclang_path,
            "compile_commands": self.compile_commands,
            "strict": self.strict,
            "rules": self.rules,
            "rules_source": self.rules_source,
            "use_defaults": self.use_defaults,
            "jobs": self.jobs,
            "report_file": self.report_file,
            "log_level": self.log_level,
            "log_file": self.log_file,
        }

    def get_source_files(self) -> List[str]:
        """検査対象の全ソースファイルを取得する。

        明示されたファイルに続けて、ソースディレクトリ配下のファイルを
        パス順に返す（重複は除く）。

        Returns:
            ソースファイルパスのリスト
        """
        source_files = [str(Path(f).resolve()) for f in self.source_files]

        for source_dir in self.source_directories:
            path = Path(source_dir)
            if path.exists():
                source_files.extend(
                    str(f.resolve()) for f in sorted(path.rglob("*"))
                    if f.is_file() and f.suffix in SOURCE_SUFFIXES
                )

        source_files = list(dict.fromkeys(source_files))
        logger.debug(f"Found {len(source_files)} source files")
        return source_files

    def save_yaml(self, file_path: str) -> None:
        """設定をYAMLファイルに保存。

        Args:
            file_path: 保存先パス
        """
        output_path = Path(file_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {key: value for key, value in self.to_dict().items() if value is not None}

        with open(file_path, "w", encoding="utf-8") as f:
            yaml.dump(
                data,
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False
            )

        logger.info(f"Configuration saved to {file_path}")
