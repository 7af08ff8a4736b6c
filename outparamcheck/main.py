"""アウトパラメータ検査ツールのメインエントリーポイント。"""

import argparse
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import logging

import yaml

from .config import Config
from .analyzer.checker import OutParamChecker
from .analyzer.clang_analyzer import ClangAnalyzer, ClangParseError
from .io.compile_db import CompileDatabase
from .io.report_writer import ReportWriter
from .io.rules_loader import parse_rules_argument
from .models.rule import RuleConfigError
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERRORS_FOUND = 1
EXIT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数のパーサーを構築する。"""
    parser = argparse.ArgumentParser(
        prog="outparamcheck",
        description=(
            "Report calls that pass a non-pointer value where a function "
            "writes its result through a pointer argument."
        )
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="Source files or directories to check"
    )
    parser.add_argument(
        "-c", "--config",
        help="YAML configuration file"
    )
    parser.add_argument(
        "--rules",
        help="Additional rules as inline JSON ('{\"decode\": [1]}') or @FILE"
    )
    parser.add_argument(
        "--no-defaults",
        action="store_true",
        help="Do not include the built-in rule table"
    )
    parser.add_argument(
        "-p", "--compile-commands",
        help="compile_commands.json providing per-file compiler arguments"
    )
    parser.add_argument(
        "-I", dest="include_paths", action="append", default=[],
        metavar="DIR",
        help="Add an include directory"
    )
    parser.add_argument(
        "-D", dest="defines", action="append", default=[],
        metavar="MACRO",
        help="Define a preprocessor macro"
    )
    parser.add_argument(
        "-x", "--language",
        choices=["c", "c++"],
        help="Source language (default: c)"
    )
    parser.add_argument(
        "--std",
        help="Language standard, e.g. c11 or c++17"
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        help="Number of files to check in parallel"
    )
    parser.add_argument(
        "-o", "--report",
        help="Write an Excel report to this path"
    )
    parser.add_argument(
        "--print-rules",
        action="store_true",
        help="Print the effective rule table as YAML and exit"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """設定ファイルを読み込み、コマンドライン引数で上書きする。

    Args:
        args: パース済みのコマンドライン引数

    Returns:
        Config

    Raises:
        FileNotFoundError: 設定ファイルが存在しない場合
        RuleConfigError: 設定ファイルまたは --rules の値が不正な場合
    """
    if args.config:
        if not Path(args.config).exists():
            raise FileNotFoundError(f"Configuration file not found: {args.config}")
        config = Config.from_yaml(args.config)
    else:
        config = Config()

    config.include_paths = list(config.include_paths) + args.include_paths
    config.compiler_args = list(config.compiler_args) + [f"-D{d}" for d in args.defines]

    if args.language:
        config.language = args.language
    if args.std:
        config.std = args.std
    if args.jobs is not None:
        config.jobs = args.jobs
    if args.report:
        config.report_file = args.report
    if args.compile_commands:
        config.compile_commands = args.compile_commands
    if args.no_defaults:
        config.use_defaults = False
    if args.rules:
        config.rules = {**config.rules, **parse_rules_argument(args.rules)}
    if args.verbose:
        config.log_level = "DEBUG"

    for path in args.paths:
        if Path(path).is_dir():
            config.source_directories.append(path)
        else:
            config.source_files.append(path)

    return config


def collect_inputs(config: Config) -> Tuple[List[str], Dict[str, List[str]]]:
    """検査対象ファイルとファイル固有のコンパイラ引数を収集する。

    ファイルが明示されていない場合は compile_commands.json の全エントリを対象とする。
    compile_commands.json も指定されていなければ、作業ディレクトリから検索する。
    """
    files = config.get_source_files()
    compile_args: Dict[str, List[str]] = {}

    compile_commands = config.compile_commands
    if not compile_commands and not files:
        found = CompileDatabase.find(os.getcwd())
        if found is not None:
            logger.info(f"Using compile database: {found}")
            compile_commands = str(found)

    if compile_commands:
        database = CompileDatabase.load(compile_commands)
        if not files:
            files = database.files()
        for path in files:
            arguments = database.arguments_for(path)
            if arguments:
                compile_args[path] = arguments

    return files, compile_args


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント。

    Returns:
        終了コード（0: 指摘なし, 1: 指摘あり, 2: 設定・パースエラー）
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except (FileNotFoundError, RuleConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(level=config.log_level, log_file=config.log_file)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return EXIT_FAILURE

    try:
        rules = config.build_rule_set()
    except (RuleConfigError, ValueError) as e:
        logger.error(f"Rule configuration error: {e}")
        return EXIT_FAILURE

    if args.print_rules:
        yaml.safe_dump({"rules": rules.to_dict()}, sys.stdout, default_flow_style=None)
        return EXIT_OK

    try:
        files, compile_args = collect_inputs(config)
    except ValueError as e:
        logger.error(str(e))
        return EXIT_FAILURE

    if not files:
        parser.error("no source files to check")

    logger.info(f"Checking {len(files)} file(s) against {len(rules)} rules")

    try:
        analyzer = ClangAnalyzer(
            include_paths=config.include_paths,
            additional_args=config.compiler_args,
            library_path=config.libclang_path,
            language=config.language,
            std=config.std,
            strict=config.strict
        )
        checker = OutParamChecker(rules, analyzer)
        out_param_errors = checker.check_files(
            files, jobs=config.jobs, compile_args=compile_args
        )
    except ClangParseError as e:
        logger.error(f"Parse failure: {e}")
        return EXIT_FAILURE

    writer = ReportWriter()
    writer.write_text(out_param_errors, sys.stdout)
    if config.report_file:
        writer.write_excel(out_param_errors, config.report_file)

    logger.info(f"Found {len(out_param_errors)} out-parameter error(s)")
    return EXIT_ERRORS_FOUND if out_param_errors else EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
