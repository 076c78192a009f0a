"""検索 API キーのローテーション."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from rankcheck.errors import ConfigurationError
from rankcheck.models import CredentialPair


class CredentialPool:
    """キーペアをラウンドロビンで払い出す.

    n 回目の呼び出しは (initial + n - 1) mod len(pairs) 番目を返す。
    カーソルはロックで保護し、外部には公開しない。
    """

    def __init__(self, pairs: Sequence[CredentialPair], initial: int = 0):
        if not pairs:
            raise ConfigurationError("キーペアが1件もありません")
        self._pairs = tuple(pairs)
        self._cursor = initial % len(self._pairs)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._pairs)

    def next(self) -> CredentialPair:
        with self._lock:
            pair = self._pairs[self._cursor]
            self._cursor = (self._cursor + 1) % len(self._pairs)
        return pair
