"""
ShortcutTracker CLI entrypoint.

Keeps a catalog of per-application keyboard shortcuts, mirrors it to a
JSON backup in ~/.shortcutTracker and can pull shortcuts out of free text
with an AI provider. See `python run.py --help` for the subcommands.
"""
# ===============================================
# Standard Library Imports
# ===============================================
import sys
import logging

# ===============================================
# Logging Configuration
# ===============================================
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

# ===============================================
# Application-Specific Imports
# ===============================================
from shortcut_tracker.cli import main


if __name__ == "__main__":
    sys.exit(main())
