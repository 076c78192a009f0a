"""順位取得エンジン — 入力行から行順どおりの RankRecord を作る."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import requests

from rankcheck.config import EngineConfig
from rankcheck.credentials import CredentialPool
from rankcheck.fetcher import RateLimitedFetcher
from rankcheck.grouping import group_rows
from rankcheck.merger import RankMerger
from rankcheck.models import CredentialPair, RankRecord, RankStatus, SearchRow
from rankcheck.scanner import Fetcher, PageScanner
from rankcheck.scheduler import GroupScheduler

logger = logging.getLogger(__name__)


class RankEngine:
    """グルーピング → 並行走査 → 統合 を1回分実行する."""

    def __init__(self, fetcher: Fetcher, config: EngineConfig):
        self.config = config
        self.scheduler = GroupScheduler(PageScanner(fetcher, config), config.max_concurrent_groups)
        self.merger = RankMerger(config.merge_policy)

    @classmethod
    def from_credentials(
        cls,
        credentials: Sequence[CredentialPair],
        config: EngineConfig,
        session: requests.Session | None = None,
    ) -> RankEngine:
        pool = CredentialPool(credentials)
        return cls(RateLimitedFetcher(pool, config, session=session), config)

    def resolve(self, rows: Sequence[SearchRow]) -> list[RankRecord]:
        """rows と同じ長さ・同じ順序の RankRecord を返す."""
        groups = group_rows(rows)
        logger.info("入力行: %d 件, ユニークキーワード数: %d, ポリシー: %s",
                    len(rows), len(groups), self.config.merge_policy.value)

        rank_maps = self.scheduler.resolve(groups)

        # 入力順に1行ずつ統合する（未入力の行は SKIPPED）
        records: list[RankRecord] = []
        for row in rows:
            record = self.merger.merge(row, rank_maps.get(row.keyword, {}))
            records.append(record)
            if record.status is not RankStatus.SKIPPED:
                logger.info("  keyword=%s, id=%s, compare=%s → %s",
                            row.keyword, row.primary_id, row.comparison_id or "-",
                            record.render(self.config.not_found_label))

        return records
