"""例外定義.

ページ単位の失敗（FetchError 系）はスキャナーで吸収し、
グループ単位の失敗（GroupFailure）はスケジューラーで吸収する。
RunFailure 以上は実行全体を中断する。
"""


class RankCheckError(Exception):
    """本パッケージの例外の基底クラス."""


class ConfigurationError(RankCheckError):
    """設定・認証情報の不備."""


class ValidationError(RankCheckError):
    """トリガーの必須パラメータ不足."""


class FetchError(RankCheckError):
    """1ページ分の検索リクエストの失敗."""

    def __init__(self, message: str, keyword: str = "", start: int = 0):
        super().__init__(message)
        self.keyword = keyword
        self.start = start


class RateLimitExhausted(FetchError):
    """レート制限応答が再試行上限まで続いた."""


class TransientNetworkFailure(FetchError):
    """タイムアウト・接続エラーが再試行上限まで続いた."""


class UpstreamError(FetchError):
    """再試行しない異常応答."""

    def __init__(self, message: str, keyword: str = "", start: int = 0, status_code: int | None = None):
        super().__init__(message, keyword, start)
        self.status_code = status_code


class GroupFailure(RankCheckError):
    """キーワードグループの全ページ取得に失敗した."""


class RunFailure(RankCheckError):
    """実行全体の失敗（設定読込・シート読み書き）."""


class StoreError(RunFailure):
    """スプレッドシートの読み書き失敗."""
