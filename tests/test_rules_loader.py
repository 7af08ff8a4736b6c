"""規則テーブル読み込みのテスト。"""

import json

import pandas as pd
import pytest

from outparamcheck.io.rules_loader import RulesLoader, parse_rules_argument
from outparamcheck.models.rule import RuleConfigError, build_rules


class TestRulesLoaderYaml:
    """YAML形式の読み込みテスト。"""

    def test_rules_key(self, tmp_path):
        """rulesキー配下の規則が読み込まれること。"""
        path = tmp_path / "rules.yaml"
        path.write_text(
            "rules:\n"
            "  json_tokener_parse_verbose: [1]\n"
            "  \"mylib::decode\": [1, 2]\n",
            encoding="utf-8"
        )

        rules = RulesLoader().load_file(str(path))

        assert rules == {"json_tokener_parse_verbose": [1], "mylib::decode": [1, 2]}

    def test_bare_mapping_and_scalar_index(self, tmp_path):
        """rulesキーなしのマッピングと単一の整数が受け付けられること。"""
        path = tmp_path / "rules.yml"
        path.write_text("decode: 1\n", encoding="utf-8")

        assert RulesLoader().load_file(str(path)) == {"decode": [1]}

    def test_empty_file(self, tmp_path):
        """空のファイルは規則なしとして扱われること。"""
        path = tmp_path / "rules.yaml"
        path.write_text("", encoding="utf-8")

        assert RulesLoader().load_file(str(path)) == {}

    def test_invalid_yaml(self, tmp_path):
        """YAMLの構文エラーがRuleConfigErrorになること。"""
        path = tmp_path / "rules.yaml"
        path.write_text("decode: [1\n", encoding="utf-8")

        with pytest.raises(RuleConfigError, match="rules.yaml"):
            RulesLoader().load_file(str(path))

    def test_not_a_mapping(self, tmp_path):
        """マッピング以外はRuleConfigErrorになること。"""
        path = tmp_path / "rules.yaml"
        path.write_text("- decode\n- encode\n", encoding="utf-8")

        with pytest.raises(RuleConfigError):
            RulesLoader().load_file(str(path))


class TestRulesLoaderJson:
    """JSON形式の読み込みテスト。"""

    def test_load(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": {"sscanf": [2]}}), encoding="utf-8")

        assert RulesLoader().load_file(str(path)) == {"sscanf": [2]}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text("{\"sscanf\": [2]", encoding="utf-8")

        with pytest.raises(RuleConfigError):
            RulesLoader().load_file(str(path))


class TestRulesLoaderTabular:
    """CSV・Excel形式の読み込みテスト。"""

    def test_csv(self, tmp_path):
        """区切り文字の異なる引数位置が解釈されること。"""
        path = tmp_path / "rules.csv"
        path.write_text(
            "Function,Arguments\n"
            "sscanf,2\n"
            "mylib::decode,\"1;2\"\n"
            "mylib::encode,\"0, 3\"\n"
            ",\n",
            encoding="utf-8"
        )

        rules = RulesLoader().load_file(str(path))

        assert rules == {
            "sscanf": [2],
            "mylib::decode": [1, 2],
            "mylib::encode": [0, 3],
        }

    def test_csv_custom_columns(self, tmp_path):
        """列名の対応付けを変更できること。"""
        path = tmp_path / "rules.csv"
        path.write_text("name,out_params\ndecode,1\n", encoding="utf-8")

        rules = RulesLoader().load({
            "path": str(path),
            "columns": {"function": "name", "arguments": "out_params"},
        })

        assert rules == {"decode": [1]}

    def test_csv_missing_column(self, tmp_path):
        path = tmp_path / "rules.csv"
        path.write_text("Function\ndecode\n", encoding="utf-8")

        with pytest.raises(RuleConfigError, match="Arguments"):
            RulesLoader().load_file(str(path))

    def test_csv_invalid_index(self, tmp_path):
        path = tmp_path / "rules.csv"
        path.write_text("Function,Arguments\ndecode,first\n", encoding="utf-8")

        with pytest.raises(RuleConfigError, match="first"):
            RulesLoader().load_file(str(path))

    def test_csv_fractional_index_rejected(self, tmp_path):
        """小数の引数位置は切り捨てずに拒否されること。"""
        path = tmp_path / "rules.csv"
        path.write_text("Function,Arguments\ndecode,1.5\n", encoding="utf-8")

        with pytest.raises(RuleConfigError, match="1.5"):
            RulesLoader().load_file(str(path))

    def test_csv_integral_float_accepted(self, tmp_path):
        """数値セル由来の "2.0" は整数として扱われること。"""
        path = tmp_path / "rules.csv"
        path.write_text("Function,Arguments\ndecode,\"2.0;3\"\n", encoding="utf-8")

        assert RulesLoader().load_file(str(path)) == {"decode": [2, 3]}

    def test_csv_empty_arguments_rejected_when_built(self, tmp_path):
        """引数位置が空の行は規則の構築時に拒否されること。"""
        path = tmp_path / "rules.csv"
        path.write_text("Function,Arguments\ndecode,\n", encoding="utf-8")

        rules = RulesLoader().load_file(str(path))
        assert rules == {"decode": []}
        with pytest.raises(RuleConfigError):
            build_rules({}, rules)

    def test_excel(self, tmp_path):
        """指定したシートから読み込まれること。"""
        path = tmp_path / "rules.xlsx"
        df = pd.DataFrame({
            "Function": ["sscanf", "mylib::decode"],
            "Arguments": ["2", "1;2"],
        })
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            pd.DataFrame({"Other": [1]}).to_excel(writer, sheet_name="Notes", index=False)
            df.to_excel(writer, sheet_name="Rules", index=False)

        rules = RulesLoader().load({"path": str(path), "sheet": "Rules"})

        assert rules == {"sscanf": [2], "mylib::decode": [1, 2]}


class TestRulesLoaderSource:
    """load()の入力解決のテスト。"""

    def test_missing_path(self):
        assert RulesLoader().load({}) == {}

    def test_missing_file(self, tmp_path):
        assert RulesLoader().load({"path": str(tmp_path / "none.yaml")}) == {}

    def test_explicit_type_overrides_suffix(self, tmp_path):
        path = tmp_path / "rules.txt"
        path.write_text(json.dumps({"decode": [0]}), encoding="utf-8")

        assert RulesLoader().load({"path": str(path), "type": "json"}) == {"decode": [0]}

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / "rules.txt"
        path.write_text("", encoding="utf-8")

        with pytest.raises(ValueError):
            RulesLoader().load({"path": str(path), "type": "xml"})


class TestParseRulesArgument:
    """--rules引数の解釈のテスト。"""

    def test_inline_json(self):
        assert parse_rules_argument('{"decode": [1], "encode": 2}') == {
            "decode": [1],
            "encode": [2],
        }

    def test_file_reference(self, tmp_path):
        path = tmp_path / "rules.yaml"
        path.write_text("rules:\n  decode: [1]\n", encoding="utf-8")

        assert parse_rules_argument(f"@{path}") == {"decode": [1]}

    def test_missing_file_reference(self, tmp_path):
        with pytest.raises(RuleConfigError):
            parse_rules_argument(f"@{tmp_path / 'none.yaml'}")

    @pytest.mark.parametrize("value", ["{decode: [1]}", "[1, 2]", "decode"])
    def test_invalid_value(self, value):
        with pytest.raises(RuleConfigError):
            parse_rules_argument(value)
