"""
Backup document codec.

Maps the Application/Shortcut graph to and from the JSON backup format:

    {"version": "1.0", "exportDate": "<ISO-8601>",
     "apps": [{"name", "iconPath", "shortcuts": [{"title", "keys",
               "description", "category"}]}]}

Decoding ignores unknown fields and treats an absent optional field the same
as an explicit null. Reconciliation into a store matches applications by
exact name and shortcuts by exact key string; a key match is skipped, never
overwritten.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .config import CONFIG
from .models import Application, Shortcut

logger = logging.getLogger(__name__)


class BackupError(Exception):
    """Base class for backup/sync failures."""


class FileAccessError(BackupError):
    """The backup file could not be read or written (permissions, IO)."""


class BackupDecodeError(BackupError):
    """The backup file is not valid JSON or does not match the schema."""


# -----------------------------
# Document types
# -----------------------------
@dataclass
class ExportShortcut:
    title: str
    keys: str
    description: Optional[str] = None
    category: Optional[str] = None


@dataclass
class ExportApp:
    name: str
    icon_path: Optional[str] = None
    shortcuts: List[ExportShortcut] = field(default_factory=list)


@dataclass
class BackupDocument:
    version: str
    export_date: datetime
    apps: List[ExportApp] = field(default_factory=list)


@dataclass
class ImportReport:
    """Outcome of reconciling a backup document into a store."""
    backup_present: bool = True
    apps_created: int = 0
    shortcuts_added: int = 0
    shortcuts_skipped: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.apps_created or self.shortcuts_added)


# -----------------------------
# Encoding
# -----------------------------
def to_document(apps: Iterable[Application]) -> BackupDocument:
    """Project the entity graph onto the backup schema."""
    return BackupDocument(
        version=CONFIG["backup_version"],
        export_date=datetime.now(timezone.utc),
        apps=[
            ExportApp(
                name=app.name,
                icon_path=app.icon_path,
                shortcuts=[
                    ExportShortcut(
                        title=s.title,
                        keys=s.keys,
                        description=s.description,
                        category=s.category,
                    )
                    for s in app.shortcuts
                ],
            )
            for app in apps
        ],
    )


def _document_to_dict(doc: BackupDocument) -> Dict[str, Any]:
    return {
        "version": doc.version,
        "exportDate": doc.export_date.isoformat(timespec="seconds").replace("+00:00", "Z"),
        "apps": [
            {
                "name": a.name,
                "iconPath": a.icon_path,
                "shortcuts": [
                    {
                        "title": s.title,
                        "keys": s.keys,
                        "description": s.description,
                        "category": s.category,
                    }
                    for s in a.shortcuts
                ],
            }
            for a in doc.apps
        ],
    }


def encode(doc: BackupDocument) -> bytes:
    text = json.dumps(_document_to_dict(doc), indent=2, sort_keys=True, ensure_ascii=False)
    return text.encode("utf-8")


def export_all(apps: Iterable[Application]) -> bytes:
    """Serialize every application and its shortcuts."""
    return encode(to_document(apps))


def export_app(app: Application) -> bytes:
    """Serialize a single application as a one-entry backup document."""
    return encode(to_document([app]))


# -----------------------------
# Decoding
# -----------------------------
def _required_str(obj: Dict[str, Any], key: str, where: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise BackupDecodeError(f"{where}: field '{key}' must be a string")
    if not value:
        raise BackupDecodeError(f"{where}: field '{key}' must not be empty")
    return value


def _optional_str(obj: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = obj.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise BackupDecodeError(f"{where}: field '{key}' must be a string or null")
    return value


def _parse_date(value: Any) -> datetime:
    if not isinstance(value, str):
        raise BackupDecodeError("field 'exportDate' must be an ISO-8601 string")
    try:
        # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise BackupDecodeError(f"invalid exportDate {value!r}: {e}") from e


def decode(data: bytes) -> BackupDocument:
    """Parse backup bytes into a BackupDocument. Raises BackupDecodeError."""
    try:
        raw = json.loads(data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data)
    except (UnicodeDecodeError, ValueError) as e:
        raise BackupDecodeError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise BackupDecodeError("Backup root must be a JSON object")

    version = _required_str(raw, "version", "document")
    export_date = _parse_date(raw.get("exportDate"))

    raw_apps = raw.get("apps")
    if not isinstance(raw_apps, list):
        raise BackupDecodeError("document: field 'apps' must be a list")

    apps: List[ExportApp] = []
    for i, a in enumerate(raw_apps):
        where = f"apps[{i}]"
        if not isinstance(a, dict):
            raise BackupDecodeError(f"{where} must be an object")
        raw_shortcuts = a.get("shortcuts")
        if not isinstance(raw_shortcuts, list):
            raise BackupDecodeError(f"{where}: field 'shortcuts' must be a list")
        shortcuts = []
        for j, s in enumerate(raw_shortcuts):
            s_where = f"{where}.shortcuts[{j}]"
            if not isinstance(s, dict):
                raise BackupDecodeError(f"{s_where} must be an object")
            shortcuts.append(
                ExportShortcut(
                    title=_required_str(s, "title", s_where),
                    keys=_required_str(s, "keys", s_where),
                    description=_optional_str(s, "description", s_where),
                    category=_optional_str(s, "category", s_where),
                )
            )
        apps.append(
            ExportApp(
                name=_required_str(a, "name", where),
                icon_path=_optional_str(a, "iconPath", where),
                shortcuts=shortcuts,
            )
        )

    return BackupDocument(version=version, export_date=export_date, apps=apps)


# -----------------------------
# Reconciliation
# -----------------------------
def import_document(doc: BackupDocument, store) -> ImportReport:
    """
    Merge `doc` into `store`.

    - Applications are matched by exact name; unmatched names are created.
    - Shortcuts are matched by exact key string within the matched
      application; a match is skipped (the local copy wins).

    All changes happen inside store.batch(), so a failure leaves the store
    as it was.
    """
    report = ImportReport()
    with store.batch():
        for export_app in doc.apps:
            app = store.find_application_by_name(export_app.name)
            if app is None:
                app = store.insert_application(
                    Application(name=export_app.name, icon_path=export_app.icon_path)
                )
                report.apps_created += 1

            for es in export_app.shortcuts:
                if app.find_shortcut_by_keys(es.keys) is not None:
                    report.shortcuts_skipped += 1
                    continue
                store.insert_shortcut(
                    Shortcut(
                        title=es.title,
                        keys=es.keys,
                        description=es.description,
                        category=es.category,
                    ),
                    into=app,
                )
                report.shortcuts_added += 1

    logger.info(
        "Import reconciled: %d apps created, %d shortcuts added, %d skipped",
        report.apps_created, report.shortcuts_added, report.shortcuts_skipped,
    )
    return report


def import_all(data: bytes, store) -> ImportReport:
    """Decode backup bytes and reconcile them into `store`."""
    return import_document(decode(data), store)


def documents_equal(a: BackupDocument, b: BackupDocument) -> bool:
    """Compare two documents ignoring the export timestamp."""
    return a.version == b.version and a.apps == b.apps
