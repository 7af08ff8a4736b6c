"""共通フィクスチャ。"""

import os
import textwrap
from pathlib import Path

import pytest

from outparamcheck.analyzer.clang_analyzer import ClangAnalyzer


@pytest.fixture(scope="session")
def c_analyzer():
    """C言語用のClangAnalyzer。"""
    return ClangAnalyzer(language="c", std="c11")


@pytest.fixture(scope="session")
def cpp_analyzer():
    """C++17用のClangAnalyzer。"""
    return ClangAnalyzer(language="c++", std="c++17")


@pytest.fixture
def write_source(tmp_path):
    """ソースコードを一時ファイルに書き出してパスを返す。"""
    def _write(source: str, filename: str = "main.c") -> Path:
        path = tmp_path / filename
        path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return Path(os.path.abspath(str(path)))
    return _write
