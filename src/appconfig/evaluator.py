"""セグメントルール評価

Feature / Property とエンティティ情報を明示的な引数として受け取る純粋関数群。
I/O も共有状態も持たないため、任意のタスク・スレッドから並行に呼び出せる。
"""

from __future__ import annotations

import hashlib
import operator
from collections.abc import Callable, Mapping
from typing import Any

from .exceptions import AppConfigError, AppConfigErrorCodes
from .models import DEFAULT_VALUE, Condition, Feature, Operator, Property, Segment, SegmentRule

_HASH_SPACE = 2**32

_Predicate = Callable[[Any, Any], bool]


def rollout_bucket(entity_id: str, entity_key: str) -> float:
    """(entity_id, entity_key) から決定的なバケット値 [0, 100) を計算する。"""
    digest = hashlib.sha256(f"{entity_id}:{entity_key}".encode("utf-8")).hexdigest()
    return int(digest[:8], 16) / _HASH_SPACE * 100


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _normalize(value: Any) -> Any:
    number = _as_number(value)
    return number if number is not None else _text(value)


def _equals(actual: Any, expected: Any) -> bool:
    return actual == expected or _normalize(actual) == _normalize(expected)


def _contains(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple, set, frozenset)):
        return any(_equals(item, expected) for item in actual)
    return _text(expected) in _text(actual)


def _compare(op: Callable[[float, float], bool]) -> _Predicate:
    def predicate(actual: Any, expected: Any) -> bool:
        left, right = _as_number(actual), _as_number(expected)
        if left is None or right is None:
            return False
        return op(left, right)

    return predicate


_POSITIVE: dict[Operator, _Predicate] = {
    Operator.IS: _equals,
    Operator.IS_ONE_OF: _equals,
    Operator.CONTAINS: _contains,
    Operator.STARTS_WITH: lambda a, e: _text(a).startswith(_text(e)),
    Operator.ENDS_WITH: lambda a, e: _text(a).endswith(_text(e)),
    Operator.GREATER_THAN: _compare(operator.gt),
    Operator.GREATER_THAN_EQUALS: _compare(operator.ge),
    Operator.LESSER_THAN: _compare(operator.lt),
    Operator.LESSER_THAN_EQUALS: _compare(operator.le),
}

_NEGATED: dict[Operator, _Predicate] = {
    Operator.IS_NOT: _equals,
    Operator.NOT_CONTAINS: _contains,
}


def evaluate_condition(condition: Condition, entity_attributes: Mapping[str, Any]) -> bool:
    """条件を評価する。属性が存在しない場合や未知の演算子は False。"""
    if condition.attribute_name not in entity_attributes:
        return False
    actual = entity_attributes[condition.attribute_name]
    try:
        op = Operator(condition.operator)
    except ValueError:
        return False
    if op in _NEGATED:
        predicate = _NEGATED[op]
        return not any(predicate(actual, expected) for expected in condition.values)
    predicate = _POSITIVE[op]
    return any(predicate(actual, expected) for expected in condition.values)


def segment_matches(segment: Segment, entity_attributes: Mapping[str, Any]) -> bool:
    """セグメントの全条件を満たすか判定する。"""
    return all(evaluate_condition(c, entity_attributes) for c in segment.conditions)


def _rule_matches(
    rule: SegmentRule,
    entity_attributes: Mapping[str, Any],
    segments: Mapping[str, Segment],
) -> bool:
    for segment_id in rule.segments:
        segment = segments.get(segment_id)
        if segment is not None and segment_matches(segment, entity_attributes):
            return True
    return False


def _evaluate_rules(
    entity_key: str,
    base_value: Any,
    rules: tuple[SegmentRule, ...],
    entity_id: str,
    entity_attributes: Mapping[str, Any] | None,
    segments: Mapping[str, Segment],
) -> Any:
    if not entity_id:
        raise AppConfigError(
            code=AppConfigErrorCodes.VALIDATION,
            message="entity_id is required for evaluation",
        )
    attributes = entity_attributes or {}
    for rule in rules:
        if not _rule_matches(rule, attributes, segments):
            continue
        # ロールアウト対象外は次のルールではなくベース値になる
        if rule.rollout_percentage >= 100 or (
            rollout_bucket(entity_id, entity_key) < rule.rollout_percentage
        ):
            return base_value if rule.value == DEFAULT_VALUE else rule.value
        return base_value
    return base_value


def evaluate_feature(
    feature: Feature,
    entity_id: str,
    entity_attributes: Mapping[str, Any] | None,
    segments: Mapping[str, Segment],
) -> Any:
    """フィーチャーの実効値を評価する。

    Args:
        feature: 評価対象のフィーチャー
        entity_id: エンティティ ID（必須）
        entity_attributes: エンティティ属性
        segments: セグメント ID をキーとしたセグメント定義

    Raises:
        AppConfigError: entity_id が空の場合 (VALIDATION_ERROR)
    """
    if not entity_id:
        raise AppConfigError(
            code=AppConfigErrorCodes.VALIDATION,
            message="entity_id is required for evaluation",
        )
    if not feature.enabled:
        return feature.disabled_value
    return _evaluate_rules(
        feature.feature_id,
        feature.enabled_value,
        feature.segment_rules,
        entity_id,
        entity_attributes,
        segments,
    )


def evaluate_property(
    prop: Property,
    entity_id: str,
    entity_attributes: Mapping[str, Any] | None,
    segments: Mapping[str, Segment],
) -> Any:
    """プロパティの実効値を評価する。ルール不一致時は prop.value。"""
    return _evaluate_rules(
        prop.property_id,
        prop.value,
        prop.segment_rules,
        entity_id,
        entity_attributes,
        segments,
    )
