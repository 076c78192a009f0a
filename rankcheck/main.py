"""ネイバーショッピング検索順位取得 — メインエントリーポイント.

処理フロー:
  1. 設定・検索 API キーを読み込む
  2. シートから [キーワード, 商品ID, 比較ID] の行を取得
  3. キーワード単位でまとめ、並行に検索・順位照合
  4. 行ごとに順位を統合し、シートの J 列に一括書き込み
"""

from __future__ import annotations

import logging
import sys
import time
from datetime import datetime, timezone

from rankcheck import sheets
from rankcheck.config import (
    LOG_DIR,
    PORT,
    load_engine_config,
    load_google_service_account,
    load_search_credentials,
)
from rankcheck.engine import RankEngine
from rankcheck.errors import ConfigurationError, RunFailure, ValidationError

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """ロギングの初期設定."""
    log_file = LOG_DIR / f"collector_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def validate_trigger(
    spreadsheet_id: str | None,
    sheet_name: str | None,
    sheet_id: int | str | None,
) -> int:
    """トリガーの必須パラメータを確認し、数値の sheetId を返す."""
    missing = [
        name for name, value in (
            ("spreadsheetId", spreadsheet_id),
            ("sheetName", sheet_name),
            ("sheetId", sheet_id),
        )
        if value is None or value == ""
    ]
    if missing:
        raise ValidationError(f"필수값 누락: {', '.join(missing)}")
    try:
        return int(sheet_id)
    except (TypeError, ValueError):
        raise ValidationError(f"sheetId は数値である必要があります: {sheet_id!r}") from None


def run(spreadsheet_id: str, sheet_name: str, sheet_id: int | str) -> int:
    """1シート分の順位を取得して書き込む.

    Returns:
        処理した行数

    Raises:
        ValidationError: 必須パラメータ不足（処理は行わない）
        RunFailure: 設定読込・シート読み書きの失敗
    """
    sheet_id = validate_trigger(spreadsheet_id, sheet_name, sheet_id)
    logger.info("=== 検索順位取得 開始: %s / %s ===", spreadsheet_id, sheet_name)
    start_time = time.time()
    run_at = datetime.now(timezone.utc)

    try:
        config = load_engine_config()
        credentials = load_search_credentials()
        service_account = load_google_service_account()
    except ConfigurationError as e:
        raise RunFailure(f"設定読み込み失敗: {e}") from e

    spreadsheet = sheets.open_spreadsheet(spreadsheet_id, service_account)
    rows = sheets.read_rows(spreadsheet, sheet_name)
    if not rows:
        logger.warning("入力行がありません。空の列のみ書き込みます。")

    records = RankEngine.from_credentials(credentials, config).resolve(rows)
    sheets.write_ranks(spreadsheet, sheet_id, sheet_name, records, run_at, config.not_found_label)

    elapsed = time.time() - start_time
    logger.info("=== 検索順位取得 完了 ===")
    logger.info("処理行数: %d 行, 所要時間: %.1f 秒", len(records), elapsed)
    return len(records)


if __name__ == "__main__":
    from rankcheck.server import app

    setup_logging()
    app.run(host="0.0.0.0", port=PORT)
