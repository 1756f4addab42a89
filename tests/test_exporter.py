import json
from datetime import datetime, timezone

import pytest

from shortcut_tracker.catalog import Catalog
from shortcut_tracker.exporter import (
    BackupDecodeError,
    BackupDocument,
    ExportApp,
    ExportShortcut,
    decode,
    documents_equal,
    encode,
    export_all,
    export_app,
    import_all,
    import_document,
    to_document,
)
from shortcut_tracker.models import Application, Shortcut
from shortcut_tracker.store import ShortcutStore, ValidationError


def _xcode():
    app = Application(name="Xcode", icon_path="/Applications/Xcode.app")
    app.add_shortcut(Shortcut(title="Build", keys="⌘B", description="Build the target", category="Tools"))
    app.add_shortcut(Shortcut(title="Run", keys="⌘R"))
    return app


def test_encode_layout():
    raw = json.loads(export_all([_xcode()]).decode("utf-8"))
    assert raw["version"] == "1.0"
    assert raw["exportDate"].endswith("Z")
    [app] = raw["apps"]
    assert app["name"] == "Xcode"
    assert app["iconPath"] == "/Applications/Xcode.app"
    assert app["shortcuts"][0] == {
        "title": "Build",
        "keys": "⌘B",
        "description": "Build the target",
        "category": "Tools",
    }


def test_encode_is_pretty_printed_with_sorted_keys():
    text = export_all([_xcode()]).decode("utf-8")
    assert "\n  " in text
    assert text.index('"apps"') < text.index('"exportDate"') < text.index('"version"')
    assert "⌘B" in text


def test_round_trip_with_and_without_optional_fields():
    doc = to_document([_xcode(), Application(name="Empty")])
    decoded = decode(encode(doc))
    assert documents_equal(doc, decoded)
    assert decoded.apps[0].shortcuts[1].description is None
    assert decoded.apps[1].icon_path is None


def test_export_app_is_single_entry_document():
    doc = decode(export_app(_xcode()))
    assert [a.name for a in doc.apps] == ["Xcode"]


def test_decode_treats_absent_and_null_alike_and_ignores_unknown_fields():
    data = json.dumps({
        "version": "1.0",
        "exportDate": "2024-05-01T10:00:00Z",
        "extra": True,
        "apps": [{
            "name": "Finder",
            "shortcuts": [
                {"title": "New Window", "keys": "⌘N", "description": None, "color": "red"},
            ],
        }],
    }).encode("utf-8")
    doc = decode(data)
    assert doc.export_date.year == 2024
    [app] = doc.apps
    assert app.icon_path is None
    assert app.shortcuts[0].description is None
    assert app.shortcuts[0].category is None


@pytest.mark.parametrize("payload", [
    b"not json",
    b"[]",
    json.dumps({"version": "1.0", "exportDate": "2024-05-01T10:00:00Z"}).encode(),
    json.dumps({"version": "1.0", "exportDate": "yesterday", "apps": []}).encode(),
    json.dumps({"version": "1.0", "exportDate": "2024-05-01T10:00:00Z",
                "apps": [{"name": "X", "shortcuts": [{"title": "T"}]}]}).encode(),
    json.dumps({"version": "1.0", "exportDate": "2024-05-01T10:00:00Z",
                "apps": [{"name": "X", "shortcuts": [{"title": "", "keys": "⌘X"}]}]}).encode(),
    json.dumps({"version": "1.0", "exportDate": "2024-05-01T10:00:00Z",
                "apps": [{"name": "", "shortcuts": []}]}).encode(),
])
def test_decode_rejects_malformed_documents(payload):
    with pytest.raises(BackupDecodeError):
        decode(payload)


def test_import_creates_new_application_with_listed_shortcuts():
    store = ShortcutStore(in_memory=True)
    report = import_all(export_all([_xcode()]), store)

    [app] = store.applications
    assert app.name == "Xcode"
    assert [(s.title, s.keys) for s in app.shortcuts] == [("Build", "⌘B"), ("Run", "⌘R")]
    assert report.apps_created == 1
    assert report.shortcuts_added == 2
    assert report.changed


def test_import_twice_is_idempotent():
    store = ShortcutStore(in_memory=True)
    data = export_all([_xcode()])
    import_all(data, store)
    snapshot = [(a.name, [(s.title, s.keys) for s in a.shortcuts]) for a in store.applications]

    report = import_all(data, store)
    assert [(a.name, [(s.title, s.keys) for s in a.shortcuts]) for a in store.applications] == snapshot
    assert report.shortcuts_skipped == 2
    assert not report.changed


def test_import_skips_existing_keys_without_overwriting():
    store = ShortcutStore(in_memory=True)
    app = store.add_app(Application(name="TextEdit"))
    store.add_shortcut(Shortcut(title="Save", keys="⌘S"), app)

    incoming = Application(name="TextEdit")
    incoming.add_shortcut(Shortcut(title="SaveAs", keys="⌘S"))
    incoming.add_shortcut(Shortcut(title="Open", keys="⌘O"))
    report = import_all(export_all([incoming]), store)

    [stored] = store.applications
    assert stored.find_shortcut_by_keys("⌘S").title == "Save"
    assert stored.find_shortcut_by_keys("⌘O").title == "Open"
    assert (report.apps_created, report.shortcuts_added, report.shortcuts_skipped) == (0, 1, 1)


def test_import_matches_application_names_exactly():
    store = ShortcutStore(in_memory=True)
    store.add_app(Application(name="xcode"))
    import_all(export_all([_xcode()]), store)
    assert sorted(a.name for a in store.applications) == ["Xcode", "xcode"]


def test_failed_import_rolls_back_the_live_objects():
    store = ShortcutStore(in_memory=True)
    catalog = Catalog(store)
    xcode = catalog.add_app("Xcode")
    catalog.add_shortcut("Build", "⌘B")

    doc = BackupDocument(
        version="1.0",
        export_date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        apps=[
            ExportApp(name="Safari", shortcuts=[ExportShortcut(title="New Tab", keys="⌘T")]),
            ExportApp(name="Xcode", shortcuts=[
                ExportShortcut(title="Run", keys="⌘R"),
                ExportShortcut(title="", keys="⌘X"),
            ]),
        ],
    )
    with pytest.raises(ValidationError):
        import_document(doc, store)

    assert store.applications == [xcode]
    assert catalog.selected_app is store.applications[0]
    assert [s.keys for s in xcode.shortcuts] == ["⌘B"]
    assert all(s.app is xcode for s in xcode.shortcuts)

    catalog.add_shortcut("Test", "⌘U")
    assert [s.keys for s in store.find_application_by_name("Xcode").shortcuts] == ["⌘B", "⌘U"]
