"""Google スプレッドシート読み書きモジュール.

入力: G7:I（[キーワード, 商品ID, 比較ID]）
出力: J列に1列挿入し、J6 に実行日時、J7 以降に順位を書き込む。
書き込みは実行の最後に1回だけ行う（途中結果は保存しない）。
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from zoneinfo import ZoneInfo

import gspread
import requests
from google.auth.exceptions import GoogleAuthError

from rankcheck.config import (
    HEADER_COLOR,
    HEADER_ROW_INDEX,
    HEADER_TIME_FORMAT,
    INPUT_RANGE,
    OUTPUT_COLUMN_INDEX,
    OUTPUT_COLUMN_LETTER,
    SHEETS_SCOPES,
    TIMEZONE,
)
from rankcheck.errors import StoreError
from rankcheck.models import RankRecord, SearchRow

logger = logging.getLogger(__name__)

_STORE_ERRORS = (gspread.exceptions.GSpreadException, GoogleAuthError, requests.RequestException)


def open_spreadsheet(spreadsheet_id: str, service_account: dict) -> gspread.Spreadsheet:
    """サービスアカウントで認証し、スプレッドシートを開く."""
    try:
        client = gspread.service_account_from_dict(service_account, scopes=SHEETS_SCOPES)
        return client.open_by_key(spreadsheet_id)
    except _STORE_ERRORS as e:
        raise StoreError(f"スプレッドシートを開けません: {spreadsheet_id}: {e}") from e


def read_rows(spreadsheet: gspread.Spreadsheet, sheet_name: str) -> list[SearchRow]:
    """入力範囲を読み込み SearchRow のリストにする."""
    try:
        values = spreadsheet.worksheet(sheet_name).get(INPUT_RANGE)
    except _STORE_ERRORS as e:
        raise StoreError(f"シート読み込み失敗: {sheet_name}!{INPUT_RANGE}: {e}") from e

    rows = rows_from_values(values)
    logger.info("シート読み込み: %s!%s → %d 行", sheet_name, INPUT_RANGE, len(rows))
    return rows


def rows_from_values(values: Sequence[Sequence]) -> list[SearchRow]:
    """セル値の2次元リストを SearchRow に変換する.

    末尾の空セルは API が返さないため、3セル未満の行は空文字で補う。
    """
    rows: list[SearchRow] = []
    for i, cells in enumerate(values):
        padded = [("" if c is None else str(c)) for c in cells][:3]
        padded += [""] * (3 - len(padded))
        keyword, primary_id, comparison_id = padded
        rows.append(SearchRow(
            row_index=i,
            keyword=keyword,
            primary_id=primary_id,
            comparison_id=comparison_id or None,
        ))
    return rows


def header_label(run_at: datetime) -> str:
    """ヘッダーセル用の実行日時（YY-MM-DD HH:MM, Asia/Seoul）."""
    return run_at.astimezone(ZoneInfo(TIMEZONE)).strftime(HEADER_TIME_FORMAT)


def build_column_requests(sheet_id: int) -> list[dict]:
    """列挿入とヘッダーセル書式設定の batchUpdate リクエスト."""
    return [
        {
            "insertDimension": {
                "range": {
                    "sheetId": sheet_id,
                    "dimension": "COLUMNS",
                    "startIndex": OUTPUT_COLUMN_INDEX,
                    "endIndex": OUTPUT_COLUMN_INDEX + 1,
                },
                "inheritFromBefore": False,
            }
        },
        {
            "repeatCell": {
                "range": {
                    "sheetId": sheet_id,
                    "startRowIndex": HEADER_ROW_INDEX,
                    "endRowIndex": HEADER_ROW_INDEX + 1,
                    "startColumnIndex": OUTPUT_COLUMN_INDEX,
                    "endColumnIndex": OUTPUT_COLUMN_INDEX + 1,
                },
                "cell": {
                    "userEnteredFormat": {
                        "backgroundColor": HEADER_COLOR,
                        "horizontalAlignment": "CENTER",
                    }
                },
                "fields": "userEnteredFormat.backgroundColor,userEnteredFormat.horizontalAlignment",
            }
        },
    ]


def write_ranks(
    spreadsheet: gspread.Spreadsheet,
    sheet_id: int,
    sheet_name: str,
    records: Sequence[RankRecord],
    run_at: datetime,
    not_found_label: str,
) -> None:
    """J列を挿入し、実行日時と順位を書き込む."""
    header_row = HEADER_ROW_INDEX + 1
    write_range = f"{OUTPUT_COLUMN_LETTER}{header_row}:{OUTPUT_COLUMN_LETTER}{header_row + len(records)}"
    values = [[header_label(run_at)]] + [[r.render(not_found_label)] for r in records]

    try:
        spreadsheet.batch_update({"requests": build_column_requests(sheet_id)})
        spreadsheet.worksheet(sheet_name).update(
            range_name=write_range,
            values=values,
            value_input_option="RAW",
        )
    except _STORE_ERRORS as e:
        raise StoreError(f"シート書き込み失敗: {sheet_name}!{write_range}: {e}") from e

    logger.info("シート書き込み: %s!%s に %d 件", sheet_name, write_range, len(records))
