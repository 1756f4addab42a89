"""
Persistent log of AI extraction attempts.

Stores one JSON record per extraction (provider, input preview, result count,
error, raw model reply) and supports export to a flat TXT transcript for
inspecting what a model actually returned.
"""

from pathlib import Path
from datetime import datetime, timezone
import json
from typing import List, Dict, Any, Optional

from .config import CONFIG, backup_dir
from .utils import atomic_write_bytes, warn


class ExtractionHistory:
    """
    Manage persisted extraction records.

    Attributes:
        path (Path): Path to the JSON log file (None = memory only).
        items (List[Dict]): In-memory history entries, oldest first.
    """

    def __init__(self, path: Optional[Path] = None, in_memory: bool = False) -> None:
        if path is None and not in_memory:
            path = backup_dir() / CONFIG["history_file_name"]
        self.path: Optional[Path] = Path(path) if path is not None else None
        self.items: List[Dict[str, Any]] = []
        self.load()

    # ------------------------------------------------------------------

    def load(self) -> None:
        """Load existing history from disk if present."""
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            warn(f"Ignoring unreadable extraction history {self.path}: {e}")
            data = []
        self.items = data if isinstance(data, list) else []

    # ------------------------------------------------------------------

    def save(self) -> None:
        """Write current history to disk."""
        if self.path is None:
            return
        payload = json.dumps(self.items, indent=2, ensure_ascii=False)
        try:
            atomic_write_bytes(self.path, payload.encode("utf-8"))
        except OSError as e:
            warn(f"Failed to save extraction history: {e}")

    # ------------------------------------------------------------------

    def add_extraction(
            self,
            provider: str,
            text: str,
            count: int = 0,
            error: Optional[str] = None,
            raw_response: Optional[str] = None,
            preview_len: int = CONFIG["history_preview_chars"],
    ) -> Dict[str, Any]:
        """
        Record one extraction attempt.

        Args:
            provider (str): Service name ("gemini", "openai", "mock").
            text (str): Input text; only a preview is kept.
            count (int): Number of shortcuts extracted.
            error (str): Error message if the attempt failed.
            raw_response (str): Model text, when available.
            preview_len (int): Characters of input kept in the preview.
        """
        preview = text if len(text) <= preview_len else text[:preview_len] + "..."
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": provider,
            "input_preview": preview,
            "input_length": len(text),
            "count": count,
            "error": error,
            "raw_response": raw_response,
        }
        self.items.append(entry)
        self.save()
        return entry

    # ------------------------------------------------------------------

    def export_txt(self, txt_path: Optional[Path] = None) -> Path:
        """
        Export history to a flat-text transcript.

        Args:
            txt_path (Path): Output file; defaults to the JSON path with .txt.
        """
        if txt_path is None:
            base = self.path if self.path is not None else backup_dir() / CONFIG["history_file_name"]
            txt_path = base.with_suffix(".txt")

        out: List[str] = []
        for h in self.items:
            status = f"ERROR: {h['error']}" if h.get("error") else f"{h.get('count', 0)} shortcuts"
            raw = f"\n[RESPONSE]\n{h['raw_response']}" if h.get("raw_response") else ""
            out.append(
                f"[{h.get('provider', 'ai')}] {h.get('timestamp', '')} - {status}"
                f"\n[INPUT] {h.get('input_preview', '')}{raw}\n"
            )

        txt_path = Path(txt_path)
        txt_path.write_text("\n".join(out), encoding="utf-8")
        return txt_path
