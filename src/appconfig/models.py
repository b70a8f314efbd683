"""App Configuration データモデル

サービスから取得した JSON ドキュメントを pydantic モデルで検証し、
ID をキーとした読み取り専用のスナップショットに変換する。
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    ValidationError,
    field_validator,
    model_serializer,
    model_validator,
)

from .exceptions import AppConfigError, AppConfigErrorCodes

# セグメントルールの value がこの値のとき、ベース値（enabled_value / value）を使う
DEFAULT_VALUE = "$default"


class DataType(str, Enum):
    """フィーチャー / プロパティのデータ型。"""

    BOOLEAN = "BOOLEAN"
    STRING = "STRING"
    NUMERIC = "NUMERIC"


class Operator(str, Enum):
    """セグメント条件の演算子。"""

    IS = "is"
    IS_NOT = "isNot"
    IS_ONE_OF = "isOneOf"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    GREATER_THAN_EQUALS = "greaterThanEquals"
    LESSER_THAN = "lesserThan"
    LESSER_THAN_EQUALS = "lesserThanEquals"


class _Entity(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Condition(_Entity):
    """セグメント条件。values のいずれかに一致すれば成立（否定演算子は全て不一致で成立）。"""

    attribute_name: str
    operator: str
    values: tuple[Any, ...] = ()


class SegmentRule(_Entity):
    """セグメントルール。segments のいずれかに一致すれば成立する。"""

    order: int
    segments: tuple[str, ...] = ()
    value: Any = None
    rollout_percentage: int = Field(default=100, ge=0, le=100)

    @model_validator(mode="before")
    @classmethod
    def _flatten_rules(cls, data: Any) -> Any:
        # wire 形式: {"rules": [{"segments": [...]}, ...]}
        if isinstance(data, dict) and "segments" not in data and "rules" in data:
            data = dict(data)
            data["segments"] = [
                segment_id
                for rule in data.pop("rules") or []
                for segment_id in (rule or {}).get("segments") or []
            ]
        return data

    @model_serializer(mode="wrap")
    def _nest_rules(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data: dict[str, Any] = handler(self)
        data["rules"] = [{"segments": list(data.pop("segments", []))}]
        return data


class _Targeted(_Entity):
    segment_rules: tuple[SegmentRule, ...] = ()

    @field_validator("segment_rules", mode="before")
    @classmethod
    def _default_rules(cls, value: Any) -> Any:
        return () if value is None else value

    @field_validator("segment_rules")
    @classmethod
    def _sort_rules(cls, value: tuple[SegmentRule, ...]) -> tuple[SegmentRule, ...]:
        return tuple(sorted(value, key=lambda rule: rule.order))


class Feature(_Targeted):
    """フィーチャーフラグ。"""

    feature_id: str
    name: str = ""
    data_type: DataType = Field(default=DataType.BOOLEAN, alias="type")
    enabled: bool = False
    enabled_value: Any = None
    disabled_value: Any = None

    @property
    def id(self) -> str:
        return self.feature_id


class Property(_Targeted):
    """プロパティ。"""

    property_id: str
    name: str = ""
    data_type: DataType = Field(default=DataType.STRING, alias="type")
    value: Any = None

    @property
    def id(self) -> str:
        return self.property_id


class Segment(_Entity):
    """セグメント。conditions を全て満たすエンティティが一致する。"""

    segment_id: str
    name: str = ""
    conditions: tuple[Condition, ...] = Field(default=(), alias="rules")

    @property
    def id(self) -> str:
        return self.segment_id


class _SnapshotDocument(_Entity):
    features: list[Feature] = Field(default_factory=list)
    properties: list[Property] = Field(default_factory=list)
    segments: list[Segment] = Field(default_factory=list)

    @field_validator("features", "properties", "segments", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return [] if value is None else value


def _frozen(items: dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(items)


@dataclass(frozen=True)
class Snapshot:
    """1 回の取得で得た Feature / Property / Segment の完全なセット。"""

    features: Mapping[str, Feature] = field(default_factory=lambda: _frozen({}))
    properties: Mapping[str, Property] = field(default_factory=lambda: _frozen({}))
    segments: Mapping[str, Segment] = field(default_factory=lambda: _frozen({}))

    @classmethod
    def from_document(cls, document: Any) -> Snapshot:
        """サービスのドキュメント（dict）からスナップショットを生成する。

        Raises:
            AppConfigError: ドキュメントのスキーマが不正な場合 (PARSE_ERROR)
        """
        try:
            parsed = _SnapshotDocument.model_validate(document)
        except ValidationError as e:
            raise AppConfigError(
                code=AppConfigErrorCodes.PARSE,
                message=f"Invalid configuration document: {e}",
                cause=e,
            ) from e
        return cls(
            features=_frozen({f.feature_id: f for f in parsed.features}),
            properties=_frozen({p.property_id: p for p in parsed.properties}),
            segments=_frozen({s.segment_id: s for s in parsed.segments}),
        )

    def to_document(self) -> dict[str, Any]:
        """from_document と同じスキーマの dict に変換する。"""
        return {
            "features": [
                f.model_dump(mode="json", by_alias=True) for f in self.features.values()
            ],
            "properties": [
                p.model_dump(mode="json", by_alias=True) for p in self.properties.values()
            ],
            "segments": [
                s.model_dump(mode="json", by_alias=True) for s in self.segments.values()
            ],
        }
