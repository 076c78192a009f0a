"""キーワードグループを並行に走査する."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed

from rankcheck.errors import GroupFailure
from rankcheck.models import KeywordGroup, RankMap
from rankcheck.scanner import PageScanner

logger = logging.getLogger(__name__)


class GroupScheduler:
    """同時実行グループ数を max_concurrent_groups に抑えてスキャンを実行する."""

    def __init__(self, scanner: PageScanner, max_concurrent_groups: int):
        self.scanner = scanner
        self.max_concurrent_groups = max_concurrent_groups

    def resolve(self, groups: Sequence[KeywordGroup]) -> dict[str, RankMap]:
        """キーワード -> RankMap を返す.

        1グループの失敗は他のグループに影響させず、空の RankMap とする
        （そのグループの行はすべて圏外になる）。
        """
        results: dict[str, RankMap] = {}
        if not groups:
            return results

        with ThreadPoolExecutor(
            max_workers=self.max_concurrent_groups,
            thread_name_prefix="group",
        ) as ex:
            futures = {ex.submit(self.scanner.scan, g.keyword, g.target_ids): g for g in groups}
            for fut in as_completed(futures):
                group = futures[fut]
                try:
                    results[group.keyword] = fut.result()
                except GroupFailure as e:
                    logger.error("グループ失敗（全行を圏外とする）: %s", e)
                    results[group.keyword] = {}
                except Exception:
                    logger.exception("グループ処理中の予期しないエラー: keyword=%s", group.keyword)
                    results[group.keyword] = {}

        return results
