"""ConfigCache 実装"""

from __future__ import annotations

from collections.abc import Mapping

from .models import Feature, Property, Segment, Snapshot


class ConfigCache:
    """現在のスナップショットへの参照を 1 つだけ保持するキャッシュ。

    publish は参照の差し替えのみで行うため、読み取り側がロックを取ることはなく、
    異なる取得結果の Feature / Property / Segment が混在して見えることもない。
    """

    def __init__(self, snapshot: Snapshot | None = None) -> None:
        self._snapshot = snapshot or Snapshot()
        self._published = snapshot is not None

    @property
    def snapshot(self) -> Snapshot:
        """現在のスナップショットを返す。"""
        return self._snapshot

    @property
    def is_populated(self) -> bool:
        """一度でも publish されたか確認する。"""
        return self._published

    def publish(self, snapshot: Snapshot) -> None:
        """スナップショットを差し替える。"""
        self._snapshot = snapshot
        self._published = True

    def get_feature(self, feature_id: str) -> Feature | None:
        return self._snapshot.features.get(feature_id)

    def get_features(self) -> Mapping[str, Feature]:
        return self._snapshot.features

    def get_property(self, property_id: str) -> Property | None:
        return self._snapshot.properties.get(property_id)

    def get_properties(self) -> Mapping[str, Property]:
        return self._snapshot.properties

    def get_segment(self, segment_id: str) -> Segment | None:
        return self._snapshot.segments.get(segment_id)
