"""1キーワード分の検索結果ページを走査して順位を求める.

ページは最大 max_concurrent_pages 件ずつ並行に取得するが、
順位の記録は start の昇順に連続して揃ったページから行う。
これにより同じ商品IDが複数ページに現れても、最も上位の出現が残る。

取得を取りやめる条件（未発行のページのみ。実行中のリクエストは中断しない）:
  - 連続して処理済みの範囲で全対象IDが見つかった（cancel_when_satisfied 時）
  - 空ページを受け取った（検索結果の終端）
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Protocol

from rankcheck.config import EngineConfig
from rankcheck.errors import FetchError, GroupFailure
from rankcheck.models import PageResponse, RankMap, SearchItem

logger = logging.getLogger(__name__)

# ページ取得を取りやめた場合の戻り値
_SKIPPED = object()


class Fetcher(Protocol):
    def fetch(self, keyword: str, start: int) -> PageResponse: ...


class PageScanner:
    """キーワードと対象ID集合から RankMap を作る."""

    def __init__(self, fetcher: Fetcher, config: EngineConfig):
        self.fetcher = fetcher
        self.config = config

    def page_starts(self) -> list[int]:
        """走査する各ページの開始位置（1, 101, 201, ...）."""
        size = self.config.page_size
        return [1 + size * i for i in range(self.config.max_pages)]

    def scan(self, keyword: str, target_ids: Iterable[str]) -> RankMap:
        """全対象IDの順位を求める.

        見つからなかったIDは結果に含まれない。
        一部ページの取得失敗は「商品なし」として扱う。

        Raises:
            GroupFailure: 発行した全ページの取得に失敗した
        """
        targets = frozenset(target_ids)
        ranks: RankMap = {}
        if not targets:
            return ranks

        starts = self.page_starts()
        stop = threading.Event()
        pending: dict[int, tuple[SearchItem, ...] | None] = {}  # None = 取得失敗
        next_index = 0
        fetched = failed = 0

        def fetch_page(start: int):
            # 発行直前に停止フラグを確認する
            if stop.is_set():
                return _SKIPPED
            return self.fetcher.fetch(keyword, start)

        with ThreadPoolExecutor(
            max_workers=self.config.max_concurrent_pages,
            thread_name_prefix="page",
        ) as ex:
            futures = {ex.submit(fetch_page, s): s for s in starts}

            for fut in as_completed(futures):
                start = futures[fut]
                try:
                    result = fut.result()
                except FetchError as e:
                    failed += 1
                    logger.warning("ページ取得失敗（商品なしとして扱う）: keyword=%s, start=%d, error=%s",
                                   keyword, start, e)
                    pending[start] = None
                else:
                    if result is _SKIPPED:
                        continue
                    fetched += 1
                    pending[start] = result.items

                # start 昇順に連続して揃ったページだけを処理する
                while next_index < len(starts) and starts[next_index] in pending:
                    items = pending.pop(starts[next_index])
                    next_index += 1
                    if items is None:
                        continue
                    if not items:
                        logger.debug("検索結果の終端: keyword=%s, start=%d", keyword, starts[next_index - 1])
                        next_index = len(starts)
                        stop.set()
                        break
                    _record(keyword, items, targets, ranks)
                    if self.config.cancel_when_satisfied and len(ranks) == len(targets):
                        stop.set()
                        break

        if fetched == 0 and failed > 0:
            raise GroupFailure(f"全ページの取得に失敗しました: keyword={keyword}, 失敗={failed}")

        logger.info("走査完了: keyword=%s, 取得ページ=%d, 失敗ページ=%d, 発見=%d/%d",
                    keyword, fetched, failed, len(ranks), len(targets))
        return ranks


def _record(keyword: str, items: Iterable[SearchItem], targets: frozenset[str], ranks: RankMap) -> None:
    """対象IDのうち未記録のものに順位を記録する（最初の出現を優先）."""
    for item in items:
        if item.product_id in targets and item.product_id not in ranks:
            ranks[item.product_id] = item.rank
            logger.info("  発見: keyword=%s, id=%s → %d位 %s", keyword, item.product_id, item.rank, item.title)
