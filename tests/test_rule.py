"""規則設定モデルのテスト。"""

import pytest

from outparamcheck.models.rule import (
    DEFAULT_RULES,
    Rule,
    RuleConfigError,
    RuleSet,
    build_rules,
)


class TestDefaultRules:
    """既定の規則テーブルのテスト。"""

    def test_contains_json_unmarshal_rule(self):
        """JSONデコード関数の第2引数がポインタ必須であること。"""
        assert DEFAULT_RULES["json_tokener_parse_verbose"] == (1,)

    def test_default_table_is_read_only(self):
        """既定の規則テーブルが変更できないこと。"""
        with pytest.raises(TypeError):
            DEFAULT_RULES["json_tokener_parse_verbose"] = (0,)

    def test_build_rules_uses_defaults(self):
        """defaults省略時にDEFAULT_RULESが使われること。"""
        rules = build_rules()
        assert len(rules) == len(DEFAULT_RULES)
        assert rules.lookup("sscanf") == Rule("sscanf", (2,))


class TestBuildRules:
    """build_rulesのテスト。"""

    def test_override_replaces_whole_entry(self):
        """同名の規則は引数位置ごと置き換えられること。"""
        rules = build_rules({"decode": [1, 2]}, {"decode": [3]})
        assert rules.lookup("decode").argument_indices == (3,)

    def test_override_adds_new_entry(self):
        """新しい規則が追加されること。"""
        rules = build_rules({"decode": [1]}, {"ns::parse": [0]})
        assert set(rules) == {"decode", "ns::parse"}

    def test_indices_are_sorted_and_unique(self):
        """引数位置が昇順・重複なしに正規化されること。"""
        rules = build_rules({}, {"decode": [2, 0, 2]})
        assert rules["decode"].argument_indices == (0, 2)

    def test_scalar_index(self):
        """単一の整数が1要素の引数位置として扱われること。"""
        rules = build_rules({}, {"decode": 2})
        assert rules["decode"].argument_indices == (2,)

    def test_empty_defaults(self):
        """既定の規則なしで構築できること。"""
        rules = build_rules({}, {"decode": [1]})
        assert len(rules) == 1

    @pytest.mark.parametrize("overrides", [
        {"": [1]},
        {"   ": [1]},
        {"decode": []},
        {"decode": [-1]},
        {"decode": [True]},
        {"decode": ["1"]},
        {"decode": "1"},
        {"decode": None},
        {"decode": True},
        {"decode": -1},
    ])
    def test_malformed_entries_are_rejected(self, overrides):
        """不正なエントリがRuleConfigErrorになること。"""
        with pytest.raises(RuleConfigError):
            build_rules({}, overrides)

    def test_error_names_the_entry(self):
        """エラーメッセージに規則名が含まれること。"""
        with pytest.raises(RuleConfigError, match="mylib_decode"):
            build_rules({}, {"mylib_decode": []})

    def test_config_error_is_value_error(self):
        """RuleConfigErrorがValueErrorとして捕捉できること。"""
        with pytest.raises(ValueError):
            build_rules({}, {"decode": [-3]})


class TestRuleSet:
    """RuleSetのテスト。"""

    def test_lookup_missing_returns_none(self):
        """存在しない名前はNoneを返すこと。"""
        rules = build_rules({}, {"decode": [1]})
        assert rules.lookup("encode") is None
        assert rules.lookup(None) is None
        assert rules.lookup("") is None

    def test_lookup_is_exact(self):
        """修飾名は完全一致で照合されること。"""
        rules = build_rules({}, {"codec::decode": [1]})
        assert rules.lookup("decode") is None
        assert rules.lookup("other::codec::decode") is None
        assert rules.lookup("codec::decode") is not None

    def test_rule_set_is_immutable(self):
        """RuleSetに代入できないこと。"""
        rules = build_rules({}, {"decode": [1]})
        with pytest.raises(TypeError):
            rules["encode"] = Rule("encode", (0,))

    def test_last_rule_wins(self):
        """同名のRuleは後のものが優先されること。"""
        rules = RuleSet([Rule("decode", (0,)), Rule("decode", (1,))])
        assert rules["decode"].argument_indices == (1,)

    def test_to_dict(self):
        """辞書形式に名前順で変換されること。"""
        rules = build_rules({}, {"b": [2, 1], "a": [0]})
        assert list(rules.to_dict().items()) == [("a", [0]), ("b", [1, 2])]


class TestRule:
    """Ruleのテスト。"""

    def test_short_name(self):
        """修飾なしの名前が取得できること。"""
        assert Rule("google::protobuf::util::JsonStringToMessage", (1,)).short_name \
            == "JsonStringToMessage"
        assert Rule("sscanf", (2,)).short_name == "sscanf"

    def test_str(self):
        assert str(Rule("decode", (0, 2))) == "decode: [0, 2]"
