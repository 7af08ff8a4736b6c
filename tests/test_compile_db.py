"""compile_commands.json読み込みのテスト。"""

import json
import pytest
from pathlib import Path
from tempfile import TemporaryDirectory

from outparamcheck.io.compile_db import CompileDatabase, CompileEntry


class TestCompileEntry:
    """CompileEntryデータクラスのテスト。"""

    def test_default_values(self):
        """デフォルト値のテスト。"""
        entry = CompileEntry(file="/src/main.c", directory="/build")
        assert entry.arguments == []


class TestCompileDatabaseLoad:
    """compile_commands.jsonの読み込みテスト。"""

    def test_load_command_string(self):
        """command文字列形式のcompile_commands.jsonの読み込みテスト。"""
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            build_dir = project_root / "build"
            build_dir.mkdir()
            include_dir = project_root / "include"
            include_dir.mkdir()

            src_dir = project_root / "src"
            src_dir.mkdir()
            (src_dir / "main.c").write_text("int main(void) { return 0; }")

            compile_commands = [
                {
                    "directory": str(build_dir),
                    "command": f"gcc -I{include_dir} -DDEBUG -std=c11 -Wall -o main.o -c {src_dir}/main.c",
                    "file": str(src_dir / "main.c")
                }
            ]
            (build_dir / "compile_commands.json").write_text(
                json.dumps(compile_commands)
            )

            database = CompileDatabase.load(str(build_dir / "compile_commands.json"))
            arguments = database.arguments_for(str(src_dir / "main.c"))

            assert arguments == [
                "-I", str(include_dir),
                "-D", "DEBUG",
                "-std=c11",
            ]

    def test_load_arguments_list(self):
        """arguments配列形式のcompile_commands.jsonの読み込みテスト。"""
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            build_dir = project_root / "build"
            build_dir.mkdir()
            (build_dir / "generated").mkdir()

            compile_commands = [
                {
                    "directory": str(build_dir),
                    "arguments": [
                        "clang++",
                        "-I", "generated",
                        "-isystem", "/opt/sdk/include",
                        "-DTEST_DEFINE=1",
                        "-std=c++17",
                        "-c",
                        "../src/codec.cpp"
                    ],
                    "file": "../src/codec.cpp"
                }
            ]
            (build_dir / "compile_commands.json").write_text(
                json.dumps(compile_commands)
            )

            database = CompileDatabase.load(str(build_dir / "compile_commands.json"))

            # 相対パスのファイルはdirectory基準で解決される
            source = (project_root / "src" / "codec.cpp").resolve()
            assert database.files() == [str(source)]
            assert database.arguments_for(str(source)) == [
                "-I", str((build_dir / "generated").resolve()),
                "-isystem", "/opt/sdk/include",
                "-D", "TEST_DEFINE=1",
                "-std=c++17",
            ]

    def test_unknown_file_returns_none(self):
        """登録されていないファイルはNoneを返すことのテスト。"""
        database = CompileDatabase([
            CompileEntry(file=str(Path("/src/main.c").resolve()), directory="/build")
        ])
        assert database.arguments_for("/src/other.c") is None
        assert len(database) == 1
        assert [entry.directory for entry in database] == ["/build"]

    def test_invalid_json(self):
        """不正なJSONでValueErrorになることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "compile_commands.json"
            path.write_text("[{")

            with pytest.raises(ValueError):
                CompileDatabase.load(str(path))


class TestCompileDatabaseFind:
    """compile_commands.jsonの検索テスト。"""

    def test_find_in_various_locations(self):
        """様々なビルドディレクトリでのcompile_commands.json検索テスト。"""
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)

            cmake_build_debug = project_root / "cmake-build-debug"
            cmake_build_debug.mkdir()
            (cmake_build_debug / "compile_commands.json").write_text("[]")

            found = CompileDatabase.find(str(project_root))

            assert found is not None
            assert "cmake-build-debug" in str(found)

    def test_build_directory_takes_precedence(self):
        """build/のcompile_commands.jsonが優先されることのテスト。"""
        with TemporaryDirectory() as tmpdir:
            project_root = Path(tmpdir)
            (project_root / "compile_commands.json").write_text("[]")
            (project_root / "build").mkdir()
            (project_root / "build" / "compile_commands.json").write_text("[]")

            found = CompileDatabase.find(str(project_root))

            assert found == project_root / "build" / "compile_commands.json"

    def test_not_found(self):
        """見つからない場合はNoneを返すことのテスト。"""
        with TemporaryDirectory() as tmpdir:
            assert CompileDatabase.find(tmpdir) is None
