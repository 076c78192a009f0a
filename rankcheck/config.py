"""設定モジュール — 環境変数・定数定義."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from rankcheck.errors import ConfigurationError
from rankcheck.models import CredentialPair

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- ネイバーショッピング検索 API ---
SEARCH_API_URL = "https://openapi.naver.com/v1/search/shop.json"
NAVER_KEY_FILE = Path(os.getenv("NAVER_KEY_FILE", _PROJECT_ROOT / "package-naver-key.json"))

# --- Google スプレッドシート ---
GOOGLE_KEY_FILE = Path(os.getenv("GOOGLE_KEY_FILE", _PROJECT_ROOT / "package-google-key.json"))
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
INPUT_RANGE = "G7:I"  # [キーワード, 商品ID, 比較ID]
OUTPUT_COLUMN_INDEX = 9  # J列（0始まり）
OUTPUT_COLUMN_LETTER = "J"
HEADER_ROW_INDEX = 5  # 6行目（0始まり）
HEADER_COLOR = {"red": 0.6118, "green": 0.1529, "blue": 0.6902}
TIMEZONE = "Asia/Seoul"
HEADER_TIME_FORMAT = "%y-%m-%d %H:%M"

# --- サーバー ---
PORT = int(os.getenv("PORT", "3001"))

# --- ログ ---
LOG_DIR = _PROJECT_ROOT / "logs"
LOG_DIR.mkdir(exist_ok=True)


class MergePolicy(str, Enum):
    """行ごとの順位統合ポリシー."""

    BEST_OF_BOTH = "best"  # 商品ID・比較IDのうち良い方（小さい方）
    COMPARISON_PREFERRED = "comparison"  # 比較IDを優先し、なければ商品ID


@dataclass(frozen=True)
class EngineConfig:
    """順位取得エンジンの上限値・リトライ設定.

    Attributes:
        max_concurrent_groups: 同時に処理するキーワードグループ数
        max_concurrent_pages: 1グループ内で同時に発行するページ取得数
        max_pages: 1キーワードあたり走査する最大ページ数
        page_size: 1ページあたりの件数（API の display）
        max_retries: レート制限・タイムアウト時の再試行回数
        base_backoff: 初回バックオフ秒数
        backoff_multiplier: バックオフの倍率
        max_backoff: バックオフの上限秒数
        request_timeout: 1リクエストのタイムアウト秒数
        merge_policy: 順位統合ポリシー
        cancel_when_satisfied: 全対象が見つかった時点で未発行ページを取りやめるか
        not_found_label: 圏外時にシートへ書き込む文字列
    """

    max_concurrent_groups: int = 7
    max_concurrent_pages: int = 3
    max_pages: int = 5
    page_size: int = 100
    max_retries: int = 5
    base_backoff: float = 0.3
    backoff_multiplier: float = 2.0
    max_backoff: float = 30.0
    request_timeout: float = 15.0
    merge_policy: MergePolicy = MergePolicy.BEST_OF_BOTH
    cancel_when_satisfied: bool = True
    not_found_label: str = "확인 불가"

    def __post_init__(self) -> None:
        for name in ("max_concurrent_groups", "max_concurrent_pages", "max_pages", "page_size"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} は 1 以上である必要があります")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries は 0 以上である必要があります")

    def backoff(self, attempt: int) -> float:
        """attempt 回目（0始まり）の再試行前に待機する秒数."""
        return min(self.base_backoff * self.backoff_multiplier ** attempt, self.max_backoff)


def parse_merge_policy(value: str) -> MergePolicy:
    """文字列から MergePolicy を得る. 不明な値は ConfigurationError."""
    try:
        return MergePolicy(value.strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in MergePolicy)
        raise ConfigurationError(f"不明な MERGE_POLICY: {value!r}（{choices}）") from None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_engine_config() -> EngineConfig:
    """環境変数から EngineConfig を組み立てる."""
    defaults = EngineConfig()
    try:
        return EngineConfig(
            max_concurrent_groups=int(os.getenv("MAX_CONCURRENT_GROUPS", defaults.max_concurrent_groups)),
            max_concurrent_pages=int(os.getenv("MAX_CONCURRENT_PAGES", defaults.max_concurrent_pages)),
            max_pages=int(os.getenv("MAX_PAGES", defaults.max_pages)),
            page_size=int(os.getenv("PAGE_SIZE", defaults.page_size)),
            max_retries=int(os.getenv("MAX_RETRIES", defaults.max_retries)),
            base_backoff=float(os.getenv("BASE_BACKOFF", defaults.base_backoff)),
            backoff_multiplier=float(os.getenv("BACKOFF_MULTIPLIER", defaults.backoff_multiplier)),
            max_backoff=float(os.getenv("MAX_BACKOFF", defaults.max_backoff)),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT", defaults.request_timeout)),
            merge_policy=parse_merge_policy(os.getenv("MERGE_POLICY", defaults.merge_policy.value)),
            cancel_when_satisfied=_env_bool("CANCEL_WHEN_SATISFIED", defaults.cancel_when_satisfied),
            not_found_label=os.getenv("NOT_FOUND_LABEL", defaults.not_found_label),
        )
    except ValueError as e:
        raise ConfigurationError(f"設定値が不正です: {e}") from e


def _read_json_source(env_name: str, key_file: Path):
    """環境変数の JSON を優先し、なければキーファイルを読む."""
    raw = os.getenv(env_name)
    try:
        if raw:
            return json.loads(raw)
        return json.loads(key_file.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"{env_name} 未設定、かつ {key_file} が見つかりません") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{env_name} の JSON パースエラー: {e}") from e


def load_search_credentials() -> list[CredentialPair]:
    """検索 API のキーペア一覧を読み込む.

    NAVER_KEY_JSON（またはキーファイル）は
    {"clientId": ..., "clientSecret": ...} 単体、またはそのリスト。
    """
    data = _read_json_source("NAVER_KEY_JSON", NAVER_KEY_FILE)
    entries = data if isinstance(data, list) else [data]

    pairs: list[CredentialPair] = []
    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("clientId") or not entry.get("clientSecret"):
            raise ConfigurationError("検索 API キーには clientId と clientSecret が必要です")
        pairs.append(CredentialPair(id=str(entry["clientId"]), secret=str(entry["clientSecret"])))

    if not pairs:
        raise ConfigurationError("検索 API キーが1件も設定されていません")
    return pairs


def load_google_service_account() -> dict:
    """Google サービスアカウントの認証情報を読み込む."""
    info = _read_json_source("GOOGLE_KEY_JSON", GOOGLE_KEY_FILE)
    if not isinstance(info, dict):
        raise ConfigurationError("Google サービスアカウント情報が不正です")
    return info
