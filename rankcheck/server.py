"""順位取得トリガー用 HTTP エンドポイント."""

from __future__ import annotations

import logging

from flask import Flask, Response, jsonify, request

from rankcheck import main
from rankcheck.errors import RankCheckError, ValidationError

logger = logging.getLogger(__name__)

app = Flask(__name__)


@app.post("/naver_trigger")
def naver_trigger() -> Response | tuple[Response, int]:
    body = request.get_json(silent=True) or {}
    spreadsheet_id = body.get("spreadsheetId")
    sheet_name = body.get("sheetName")
    sheet_id = body.get("sheetId")

    try:
        main.validate_trigger(spreadsheet_id, sheet_name, sheet_id)
    except ValidationError as e:
        logger.warning("トリガー拒否: %s", e)
        return jsonify({"error": "필수값 누락"}), 400

    try:
        main.run(spreadsheet_id, sheet_name, sheet_id)
    except RankCheckError as e:
        logger.error("順位更新失敗: %s", e)
        return jsonify({"error": str(e)}), 500
    except Exception as e:
        logger.exception("順位更新中の予期しないエラー")
        return jsonify({"error": str(e)}), 500

    logger.info("順位更新完了: %s / %s", spreadsheet_id, sheet_name)
    return jsonify({"status": "success"})
