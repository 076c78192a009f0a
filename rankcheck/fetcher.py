"""ネイバーショッピング検索 API の取得モジュール.

1回の fetch で1ページ（最大 page_size 件）を取得する。
レート制限（429）とタイムアウト・接続エラー・応答の途中切断は指数バックオフで再試行し、
それ以外の異常応答は再試行せずに UpstreamError とする。
"""

from __future__ import annotations

import logging
import time

import requests
from bs4 import BeautifulSoup

from rankcheck.config import SEARCH_API_URL, EngineConfig
from rankcheck.credentials import CredentialPool
from rankcheck.errors import RateLimitExhausted, TransientNetworkFailure, UpstreamError
from rankcheck.models import PageResponse, SearchItem

logger = logging.getLogger(__name__)


class RateLimitedFetcher:
    """キーをローテーションしながら検索結果ページを取得する."""

    def __init__(
        self,
        pool: CredentialPool,
        config: EngineConfig,
        session: requests.Session | None = None,
    ):
        self.pool = pool
        self.config = config
        self.session = session or requests.Session()

    def fetch(self, keyword: str, start: int) -> PageResponse:
        """keyword の検索結果を start 件目から1ページ分取得する.

        試行ごとに新しいキーを1つ消費する（再試行も含む）。
        総試行回数は最大 max_retries + 1 回。

        Raises:
            RateLimitExhausted: 429 が再試行上限まで続いた
            TransientNetworkFailure: タイムアウト・接続エラー・応答の途中切断が再試行上限まで続いた
            UpstreamError: 429 以外の異常応答、JSON でない応答、その他のリクエスト失敗
        """
        params = {"query": keyword, "display": self.config.page_size, "start": start}
        max_retries = self.config.max_retries

        for attempt in range(max_retries + 1):
            credential = self.pool.next()
            headers = {
                "X-Naver-Client-Id": credential.id,
                "X-Naver-Client-Secret": credential.secret,
            }

            try:
                resp = self.session.get(
                    SEARCH_API_URL,
                    params=params,
                    headers=headers,
                    timeout=self.config.request_timeout,
                )
            except (requests.Timeout, requests.ConnectionError, requests.exceptions.ChunkedEncodingError) as e:
                if attempt == max_retries:
                    raise TransientNetworkFailure(
                        f"通信エラーが続きました（{attempt + 1} 回試行）: {e}", keyword, start
                    ) from e
                wait = self.config.backoff(attempt)
                logger.warning(
                    "通信エラー、%.2f 秒後に再試行: keyword=%s, start=%d, attempt=%d, error=%s",
                    wait, keyword, start, attempt + 1, e,
                )
                time.sleep(wait)
                continue
            except requests.RequestException as e:
                # リダイレクト過多・デコード失敗などは再試行しない
                raise UpstreamError(f"検索 API リクエスト失敗: {e}", keyword, start) from e

            if resp.status_code == 429:
                if attempt == max_retries:
                    raise RateLimitExhausted(
                        f"レート制限が続きました（{attempt + 1} 回試行）", keyword, start
                    )
                hint = _retry_after(resp)
                wait = hint if hint is not None else self.config.backoff(attempt)
                logger.warning(
                    "レート制限、%.2f 秒後に再試行: keyword=%s, start=%d, attempt=%d",
                    wait, keyword, start, attempt + 1,
                )
                time.sleep(wait)
                continue

            if resp.status_code != 200:
                raise UpstreamError(
                    f"検索 API 異常応答: status={resp.status_code}, body={resp.text[:200]}",
                    keyword, start, status_code=resp.status_code,
                )

            try:
                payload = resp.json()
            except ValueError as e:
                raise UpstreamError(
                    f"検索 API 応答の JSON パースエラー: {e}", keyword, start, status_code=200
                ) from e

            return PageResponse(keyword=keyword, start=start, items=parse_items(payload, start))

        # max_retries >= 0 のためここには到達しない
        raise AssertionError("unreachable")


def _retry_after(resp: requests.Response) -> float | None:
    """Retry-After ヘッダーの秒数. 数値でなければ None."""
    raw = resp.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


def parse_items(payload: dict, start: int) -> tuple[SearchItem, ...]:
    """検索 API の JSON から商品リストを抽出する.

    items がない・空の場合は空タプル（検索結果の終端）。
    順位は start + リスト内の位置（0始まり）。
    """
    if not isinstance(payload, dict):
        return ()
    items = payload.get("items") or []

    results: list[SearchItem] = []
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        product_id = item.get("productId")
        if product_id is None or product_id == "":
            continue
        results.append(SearchItem(
            product_id=str(product_id),
            rank=start + i,
            title=clean_title(item.get("title", "")),
        ))
    return tuple(results)


def clean_title(title: str) -> str:
    """<b> などのハイライトタグを除去する."""
    if not title:
        return ""
    return BeautifulSoup(title, "html.parser").get_text().strip()
