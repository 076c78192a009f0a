"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class CredentialPair:
    """検索 API のキーペア."""

    id: str  # X-Naver-Client-Id
    secret: str = field(repr=False)  # X-Naver-Client-Secret


@dataclass(frozen=True)
class SearchRow:
    """入力シートの1行を表す."""

    row_index: int  # 入力範囲内の位置（0始まり）
    keyword: str
    primary_id: str  # 商品ID（必須）
    comparison_id: str | None = None  # 比較ID（任意）

    @property
    def is_complete(self) -> bool:
        return bool(self.keyword) and bool(self.primary_id)


@dataclass(frozen=True)
class KeywordGroup:
    """同一キーワードの行をまとめたもの."""

    keyword: str
    target_ids: frozenset[str]
    members: tuple[SearchRow, ...]


@dataclass(frozen=True)
class SearchItem:
    """検索結果の1商品を表す."""

    product_id: str
    rank: int  # 検索結果全体での順位（1始まり）
    title: str = ""


@dataclass(frozen=True)
class PageResponse:
    """検索結果1ページ分."""

    keyword: str
    start: int  # 1始まりのオフセット
    items: tuple[SearchItem, ...]


# 商品ID -> 最初に見つかった順位
RankMap = dict[str, int]


class RankStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"  # キーワード・商品ID未入力の行


@dataclass(frozen=True)
class RankRecord:
    """シートに書き込む1行分の順位."""

    row_index: int
    status: RankStatus
    rank: int | None = None

    def render(self, not_found_label: str) -> str:
        if self.status is RankStatus.FOUND:
            return str(self.rank)
        if self.status is RankStatus.NOT_FOUND:
            return not_found_label
        return ""
