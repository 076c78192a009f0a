"""入力行をキーワード単位にまとめる."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from rankcheck.models import KeywordGroup, SearchRow

logger = logging.getLogger(__name__)


def group_rows(rows: Iterable[SearchRow]) -> list[KeywordGroup]:
    """キーワードごとに行をまとめ、対象ID集合を作る.

    キーワードまたは商品IDが空の行はどのグループにも含めない。
    キーワードは完全一致（正規化しない）。グループは初出順。

    Returns:
        KeywordGroup のリスト
    """
    members: dict[str, list[SearchRow]] = {}
    skipped = 0
    for row in rows:
        if not row.is_complete:
            skipped += 1
            continue
        members.setdefault(row.keyword, []).append(row)

    groups: list[KeywordGroup] = []
    for keyword, group_rows_ in members.items():
        target_ids: set[str] = set()
        for row in group_rows_:
            target_ids.add(row.primary_id)
            if row.comparison_id:
                target_ids.add(row.comparison_id)
        groups.append(KeywordGroup(
            keyword=keyword,
            target_ids=frozenset(target_ids),
            members=tuple(group_rows_),
        ))

    if skipped:
        logger.info("未入力のためスキップした行: %d 件", skipped)
    return groups
