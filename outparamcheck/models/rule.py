"""アウトパラメータ規則の設定モデル。"""

from dataclasses import dataclass
from types import MappingProxyType
from collections.abc import Iterable, Mapping
from typing import Dict, Iterator, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class RuleConfigError(ValueError):
    """規則設定が不正な場合のエラー。"""
    pass


@dataclass(frozen=True)
class Rule:
    """ポインタ渡しが必須な引数位置を持つ関数の規則。"""
    qualified_name: str
    argument_indices: Tuple[int, ...]

    @property
    def short_name(self) -> str:
        """修飾なしの関数名を取得する。"""
        return self.qualified_name.rsplit("::", 1)[-1]

    def __str__(self) -> str:
        indices = ", ".join(str(i) for i in self.argument_indices)
        return f"{self.qualified_name}: [{indices}]"


# 既定の規則テーブル（関数の修飾名 -> 0始まりの引数位置）
DEFAULT_RULES: Mapping[str, Tuple[int, ...]] = MappingProxyType({
    # json-c
    "json_tokener_parse_verbose": (1,),
    "json_object_deep_copy": (1,),
    "json_object_object_get_ex": (2,),
    "json_pointer_get": (2,),
    # libyaml
    "yaml_parser_parse": (1,),
    "yaml_parser_load": (1,),
    "yaml_parser_scan": (1,),
    # protobuf JSON
    "google::protobuf::util::JsonStringToMessage": (1,),
    "google::protobuf::util::JsonToBinaryString": (3,),
    # C標準ライブラリ
    "sscanf": (2,),
    "fscanf": (2,),
    "scanf": (1,),
    "strtol": (1,),
    "strtoul": (1,),
    "strtod": (1,),
})


def _validate_entry(name, indices) -> Rule:
    """規則エントリを検証してRuleに変換する。

    Args:
        name: 関数の修飾名
        indices: 引数位置のコレクション、または単一の整数

    Returns:
        検証済みのRule

    Raises:
        RuleConfigError: エントリが不正な場合
    """
    if not isinstance(name, str) or not name.strip():
        raise RuleConfigError(f"Rule name must be a non-empty string: {name!r}")

    # 単一の整数は1要素のリストとして扱う
    if isinstance(indices, int) and not isinstance(indices, bool):
        indices = (indices,)

    if isinstance(indices, (str, bytes)) or not isinstance(indices, Iterable):
        raise RuleConfigError(
            f"Argument indices for '{name}' must be a list of integers: {indices!r}"
        )

    checked = set()
    for index in indices:
        # boolはintのサブクラスなので明示的に除外
        if isinstance(index, bool) or not isinstance(index, int):
            raise RuleConfigError(
                f"Argument index for '{name}' must be an integer: {index!r}"
            )
        if index < 0:
            raise RuleConfigError(
                f"Argument index for '{name}' must be non-negative: {index}"
            )
        checked.add(index)

    if not checked:
        raise RuleConfigError(f"Rule '{name}' has no argument indices")

    return Rule(qualified_name=name.strip(), argument_indices=tuple(sorted(checked)))


class RuleSet(Mapping):
    """関数の修飾名をキーとする読み取り専用の規則テーブル。"""

    def __init__(self, rules: Iterable[Rule] = ()):
        table: Dict[str, Rule] = {}
        for rule in rules:
            table[rule.qualified_name] = rule
        self._rules = MappingProxyType(table)

    def lookup(self, qualified_name: Optional[str]) -> Optional[Rule]:
        """修飾名に一致する規則を取得する。

        Args:
            qualified_name: 呼び出し先の修飾名

        Returns:
            一致したRule、なければNone
        """
        if not qualified_name:
            return None
        return self._rules.get(qualified_name)

    def to_dict(self) -> Dict[str, list]:
        """規則テーブルを辞書形式に変換する。"""
        return {
            name: list(rule.argument_indices)
            for name, rule in sorted(self._rules.items())
        }

    def __getitem__(self, qualified_name: str) -> Rule:
        return self._rules[qualified_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RuleSet({len(self._rules)} rules)"


def build_rules(
    defaults: Optional[Mapping[str, Iterable[int]]] = None,
    overrides: Optional[Mapping[str, Iterable[int]]] = None
) -> RuleSet:
    """既定の規則とユーザー指定の規則をマージしてRuleSetを構築する。

    同名の規則はoverrides側で丸ごと置き換えられる（引数位置の部分マージはしない）。

    Args:
        defaults: 既定の規則テーブル（Noneの場合はDEFAULT_RULES）
        overrides: 追加・上書きする規則テーブル

    Returns:
        構築されたRuleSet

    Raises:
        RuleConfigError: 不正なエントリが含まれる場合
    """
    if defaults is None:
        defaults = DEFAULT_RULES

    merged: Dict[str, Rule] = {}
    for name, indices in defaults.items():
        rule = _validate_entry(name, indices)
        merged[rule.qualified_name] = rule

    for name, indices in (overrides or {}).items():
        rule = _validate_entry(name, indices)
        if rule.qualified_name in merged:
            logger.debug(f"Overriding rule: {merged[rule.qualified_name]} -> {rule}")
        merged[rule.qualified_name] = rule

    logger.debug(f"Built rule set with {len(merged)} rules")
    return RuleSet(merged.values())
