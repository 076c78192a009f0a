"""商品ID・比較IDの順位を1つの値にまとめる.

ポリシー:
  best        — 両方見つかれば小さい方、片方だけならその順位、どちらもなければ圏外
  comparison  — 比較IDが見つかればその順位、なければ商品IDの順位、どちらもなければ圏外
"""

from __future__ import annotations

from collections.abc import Mapping

from rankcheck.config import MergePolicy
from rankcheck.models import RankRecord, RankStatus, SearchRow


class RankMerger:
    """実行中は1つのポリシーを全行に適用する."""

    def __init__(self, policy: MergePolicy):
        self.policy = MergePolicy(policy)

    def merge(self, row: SearchRow, rank_map: Mapping[str, int]) -> RankRecord:
        if not row.is_complete:
            return RankRecord(row_index=row.row_index, status=RankStatus.SKIPPED)

        primary = rank_map.get(row.primary_id)
        comparison = rank_map.get(row.comparison_id) if row.comparison_id else None

        if self.policy is MergePolicy.COMPARISON_PREFERRED:
            rank = comparison if comparison is not None else primary
        else:
            found = [r for r in (primary, comparison) if r is not None]
            rank = min(found) if found else None

        if rank is None:
            return RankRecord(row_index=row.row_index, status=RankStatus.NOT_FOUND)
        return RankRecord(row_index=row.row_index, status=RankStatus.FOUND, rank=rank)
