# src/antigravity_bridge/transaction_logger.py
"""Optional per-request transaction files for debugging backend exchanges."""

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .utils.paths import get_transaction_logs_dir

lib_logger = logging.getLogger("antigravity_bridge")


class TransactionLogger:
    """
    Writes one directory per request:

        request_payload.json   wrapped request as sent
        response_stream.log    raw stream chunks, in arrival order
        final_response.json    collected response parts
        error.log              transport or warmup failures
    """

    __slots__ = ("enabled", "log_dir")

    def __init__(
        self,
        model_name: str,
        enabled: bool = True,
        root: Optional[Union[Path, str]] = None,
    ):
        self.enabled = enabled
        self.log_dir: Optional[Path] = None

        if not enabled:
            return

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        safe_model = model_name.replace("/", "_").replace(":", "_")
        try:
            self.log_dir = get_transaction_logs_dir(root) / f"{timestamp}_{safe_model}_{uuid.uuid4()}"
            self.log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            lib_logger.error(f"Failed to create transaction log directory: {e}")
            self.enabled = False

    def log_request(self, payload: Dict[str, Any]) -> None:
        self._write_json("request_payload.json", payload)

    def log_response_chunk(self, chunk: Union[str, bytes]) -> None:
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")
        self._append_text("response_stream.log", chunk, newline=False)

    def log_error(self, error_message: str) -> None:
        stamp = datetime.now(timezone.utc).isoformat()
        self._append_text("error.log", f"[{stamp}] {error_message}")

    def log_final_response(self, response: Dict[str, Any]) -> None:
        self._write_json("final_response.json", response)

    def _write_json(self, filename: str, data: Dict[str, Any]) -> None:
        if not self.enabled or not self.log_dir:
            return
        try:
            with open(self.log_dir / filename, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            lib_logger.error(f"Failed to write {filename}: {e}")

    def _append_text(self, filename: str, text: str, newline: bool = True) -> None:
        if not self.enabled or not self.log_dir:
            return
        try:
            with open(self.log_dir / filename, "a", encoding="utf-8") as f:
                f.write(text + "\n" if newline else text)
        except OSError as e:
            lib_logger.error(f"Failed to append to {filename}: {e}")
