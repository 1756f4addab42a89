from .config import CONFIG
from .models import Application, Shortcut
from .store import ShortcutStore
from .exporter import BackupDocument, export_all, import_all
from .backup import LocalBackupService
from .catalog import Catalog
from .ai_service import create_ai_service
from .importer import AIImportSession
from .app import ShortcutTrackerApp
