"""ロギング設定モジュール。"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """ロギング設定をセットアップする。

    指摘本体は標準出力に書き出すため、ログは標準エラー出力に出す。

    Args:
        level: ログレベル（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        log_file: ログファイルへのパス（省略可）
        format_string: カスタムフォーマット文字列（省略可）

    Returns:
        ルートロガー
    """
    if format_string is None:
        format_string = (
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(format_string)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger


class ProgressLogger:
    """進捗ログ出力用のヘルパークラス。複数スレッドから更新できる。"""

    def __init__(
        self,
        total: int,
        logger: Optional[logging.Logger] = None,
        log_interval: int = 10
    ):
        """進捗ロガーを初期化する。

        Args:
            total: アイテムの総数
            logger: 使用するロガー
            log_interval: 進捗更新の間隔
        """
        self.total = total
        self.current = 0
        self.logger = logger or logging.getLogger(__name__)
        self.log_interval = log_interval
        self._lock = threading.Lock()

    def update(self, message: Optional[str] = None) -> None:
        """進捗を更新する。

        Args:
            message: 含めるメッセージ（省略可）
        """
        with self._lock:
            self.current += 1
            current = self.current

        if self.total <= 0:
            return

        if current % self.log_interval == 0 or current == self.total:
            progress = current / self.total * 100
            msg = f"Progress: {current}/{self.total} ({progress:.1f}%)"
            if message:
                msg += f" - {message}"
            self.logger.info(msg)

    def complete(self, message: str = "Complete") -> None:
        """進捗を完了としてマークする。

        Args:
            message: 完了メッセージ
        """
        self.logger.info(f"{message}: {self.total} items processed")
