import pytest

from tutorsync import run_sync
from tutorsync.config import AppConfig
from tutorsync.directory import REPOSITORIES
from tutorsync.errors import ConfigError

from conftest import INQUIRY_HEADER, FakeSheets, sheet_url


@pytest.fixture
def wired(monkeypatch, store):
    sheets = FakeSheets()

    class StoreFactory:
        @staticmethod
        def from_config(cfg):
            return store

    monkeypatch.setattr(run_sync, "load_config", lambda: AppConfig(credentials_path="/secrets/key.json"))
    monkeypatch.setattr(run_sync, "FirestoreStore", StoreFactory)
    monkeypatch.setattr(run_sync, "open_client", lambda cfg: object())
    monkeypatch.setattr(run_sync, "SpreadsheetAdapter", lambda client: sheets)
    return store, sheets


def test_once_prints_summary(wired, capsys):
    store, sheets = wired
    store.add(REPOSITORIES, {"name": "Inquiries", "category": "inquiries", "url": sheet_url("S1")})
    store.set("contacts", "c1", {"name": "Jane", "createdAt": store.SERVER_TIMESTAMP})

    assert run_sync.main(["--once"]) == 0

    out = capsys.readouterr().out
    assert "target=contacts" in out
    assert "exported=1" in out
    assert "targets=1 failed=0" in out
    assert sheets.sheets["S1"][0] == INQUIRY_HEADER


def test_unknown_collection_exits_nonzero(wired, capsys):
    assert run_sync.main(["--collection", "tutors"]) == 1
    assert "no mirror target for collection=tutors" in capsys.readouterr().out


def test_config_error_exits_nonzero(monkeypatch, capsys):
    def broken():
        raise ConfigError("Missing env var: FIREBASE_PROJECT_ID")

    monkeypatch.setattr(run_sync, "load_config", broken)

    assert run_sync.main(["--once"]) == 1
    assert "config err=Missing env var" in capsys.readouterr().out


def test_import_repos_then_sync(wired, tmp_path, capsys):
    store, sheets = wired
    path = tmp_path / "repos.yml"
    path.write_text(
        "repositories:\n"
        f"  - name: Consultation Bookings\n    category: bookings\n    url: {sheet_url('B1')}\n",
        encoding="utf-8",
    )

    assert run_sync.main(["--once", "--import-repos", str(path)]) == 0
    assert run_sync.main(["--once", "--import-repos", str(path)]) == 0

    out = capsys.readouterr().out
    assert "imported_repositories=1" in out
    assert "imported_repositories=0" in out
    assert len(store.list(REPOSITORIES)) == 1


def test_dry_run_import_writes_nothing(wired, tmp_path, capsys):
    store, sheets = wired
    path = tmp_path / "repos.yml"
    path.write_text("repositories:\n  - name: Matches\n    category: matches\n", encoding="utf-8")

    assert run_sync.main(["--dry-run", "--import-repos", str(path)]) == 0

    assert "[DRY-RUN] would import up to 1 repositories" in capsys.readouterr().out
    assert store.list(REPOSITORIES) == []
