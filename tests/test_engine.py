"""engine / scheduler モジュールのテスト."""

import threading
import time
from unittest.mock import MagicMock, patch

import requests

from rankcheck.config import EngineConfig, MergePolicy
from rankcheck.engine import RankEngine
from rankcheck.errors import GroupFailure, TransientNetworkFailure
from rankcheck.models import CredentialPair, KeywordGroup, PageResponse, SearchItem, SearchRow
from rankcheck.scheduler import GroupScheduler
from rankcheck.sheets import rows_from_values

NOT_FOUND = "확인 불가"


class KeywordFetcher:
    """keyword -> {start: 商品IDリスト} を返す検索 API の代替. 未登録キーワードは常に失敗."""

    def __init__(self, results):
        self.results = results

    def fetch(self, keyword, start):
        if keyword not in self.results:
            raise TransientNetworkFailure("timed out", keyword, start)
        ids = self.results[keyword].get(start, [])
        items = tuple(SearchItem(product_id=pid, rank=start + i) for i, pid in enumerate(ids))
        return PageResponse(keyword=keyword, start=start, items=items)


def _page_one(positions: dict[str, int], size: int = 100) -> list[str]:
    """指定順位に商品を置いた1ページ目."""
    ids = [f"other-{i}" for i in range(size)]
    for pid, rank in positions.items():
        ids[rank - 1] = pid
    return ids


def _render(records):
    return [r.render(NOT_FOUND) for r in records]


class TestRankEngine:
    """RankEngine.resolve のテスト."""

    results = {"shoes": {1: _page_one({"111": 5, "222": 50})}}

    def test_end_to_end_best_of_both(self):
        rows = rows_from_values([["shoes", "111", ""], ["shoes", "222", "111"]])
        engine = RankEngine(KeywordFetcher(self.results), EngineConfig())

        assert _render(engine.resolve(rows)) == ["5", "5"]

    def test_end_to_end_comparison_preferred(self):
        rows = rows_from_values([["shoes", "111", ""], ["shoes", "222", "111"]])
        config = EngineConfig(merge_policy=MergePolicy.COMPARISON_PREFERRED)
        engine = RankEngine(KeywordFetcher(self.results), config)

        assert _render(engine.resolve(rows)) == ["5", "5"]

    def test_missing_field_row(self):
        """キーワード未入力の行は空欄になり、検索対象にならないこと."""
        fetcher = MagicMock()
        rows = rows_from_values([["", "111", ""]])

        records = RankEngine(fetcher, EngineConfig()).resolve(rows)

        assert _render(records) == [""]
        fetcher.fetch.assert_not_called()

    def test_output_order_and_length(self):
        """出力は入力と同じ長さ・同じ順序であること."""
        results = {
            "shoes": {1: _page_one({"111": 5})},
            "bag": {1: _page_one({"900": 1, "901": 77})},
        }
        rows = rows_from_values([
            ["bag", "901"],
            ["shoes", "111", ""],
            ["", "", ""],
            ["bag", "900", "999"],
            ["shoes", "404"],
        ])

        records = RankEngine(KeywordFetcher(results), EngineConfig()).resolve(rows)

        assert [r.row_index for r in records] == [0, 1, 2, 3, 4]
        assert _render(records) == ["77", "5", "", "1", NOT_FOUND]

    def test_group_isolation(self):
        """1キーワードの全ページが失敗しても、他のキーワードは正しく求まること."""
        rows = rows_from_values([["broken", "1"], ["shoes", "111"], ["broken", "2", "3"]])

        records = RankEngine(KeywordFetcher(self.results), EngineConfig()).resolve(rows)

        assert _render(records) == [NOT_FOUND, "5", NOT_FOUND]

    def test_empty_input(self):
        assert RankEngine(MagicMock(), EngineConfig()).resolve([]) == []

    def test_duplicate_row_object(self):
        """同じ行オブジェクトが2回現れても、両方の位置に順位が入ること."""
        row = SearchRow(0, "shoes", "111")

        records = RankEngine(KeywordFetcher(self.results), EngineConfig()).resolve([row, row])

        assert _render(records) == ["5", "5"]

    @patch("rankcheck.fetcher.time.sleep")
    def test_broken_response_isolated_to_page(self, mock_sleep):
        """1ページの応答が途中で切れても、他ページの順位は残ること."""

        def get(url, params, headers, timeout):
            if params["start"] == 101:
                raise requests.exceptions.ChunkedEncodingError("connection broken")
            resp = MagicMock(status_code=200, headers={})
            items = [{"productId": "111", "title": "<b>운동화</b>"}] if params["start"] == 1 else []
            resp.json.return_value = {"items": items}
            return resp

        session = MagicMock()
        session.get.side_effect = get
        config = EngineConfig(max_retries=1, cancel_when_satisfied=False)
        engine = RankEngine.from_credentials([CredentialPair("id", "secret")], config, session=session)

        records = engine.resolve(rows_from_values([["shoes", "111"]]))

        assert _render(records) == ["1"]
        starts = [c.kwargs["params"]["start"] for c in session.get.call_args_list]
        assert starts.count(101) == 2


class TestGroupScheduler:
    """GroupScheduler.resolve のテスト."""

    def _groups(self, *keywords):
        return [KeywordGroup(k, frozenset({"1"}), (SearchRow(0, k, "1"),)) for k in keywords]

    def test_failure_becomes_empty_map(self):
        scanner = MagicMock()

        def scan(keyword, target_ids):
            if keyword == "bad":
                raise GroupFailure("all pages failed")
            if keyword == "boom":
                raise RuntimeError("unexpected")
            return {"1": 3}

        scanner.scan.side_effect = scan
        results = GroupScheduler(scanner, 2).resolve(self._groups("good", "bad", "boom"))

        assert results == {"good": {"1": 3}, "bad": {}, "boom": {}}

    def test_no_groups(self):
        scanner = MagicMock()
        assert GroupScheduler(scanner, 3).resolve([]) == {}
        scanner.scan.assert_not_called()

    def test_concurrency_bound(self):
        """同時実行グループ数が max_concurrent_groups を超えないこと."""
        lock = threading.Lock()
        state = {"active": 0, "max_active": 0}

        def scan(keyword, target_ids):
            with lock:
                state["active"] += 1
                state["max_active"] = max(state["max_active"], state["active"])
            time.sleep(0.02)
            with lock:
                state["active"] -= 1
            return {"1": 1}

        scanner = MagicMock()
        scanner.scan.side_effect = scan
        keywords = [f"kw-{i}" for i in range(8)]

        results = GroupScheduler(scanner, 3).resolve(self._groups(*keywords))

        assert sorted(results) == sorted(keywords)
        assert scanner.scan.call_count == 8
        assert state["max_active"] <= 3
