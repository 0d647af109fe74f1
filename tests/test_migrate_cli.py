"""Tests for the grc-migrate operator CLI."""

from __future__ import annotations

import json

import pytest

from grc_records.adapters.store.in_memory import InMemoryDocumentStore
from grc_records.core.errors import StoreUnavailableError
from grc_records.migrate import main


def unreachable():
    raise StoreUnavailableError(code="store_unavailable", message="Document store unreachable")


class OutageStore(InMemoryDocumentStore):
    def find(self, collection, selector=None):
        raise StoreUnavailableError(code="store_unavailable", message="connection lost")


def test_list_prints_every_migration(capsys) -> None:
    assert main(["list"]) == 0

    output = capsys.readouterr().out
    assert "user-roles" in output
    assert "workshop-treatment-minutes" in output
    assert "soa-control-status" in output
    assert "threat-mitre-tactic" in output


def test_run_migrates_and_prints_counts(store, capsys) -> None:
    store.insert_many("risks", [{"currentPhase": "analysis"}, {"currentPhase": "Draft"}])

    assert main(["run", "risk-phase-case"], store_factory=lambda: store) == 0

    output = capsys.readouterr().out
    assert "scanned=1 updated=1 skipped=0 errored=0" in output
    assert {d["currentPhase"] for d in store.find("risks")} == {"Analysis", "Draft"}


def test_dry_run_json_report_leaves_store_untouched(store, capsys) -> None:
    store.insert_many("users", [{"email": "a@example.com", "role": "admin"}])

    assert main(["run", "user-roles", "--dry-run", "--json"], store_factory=lambda: store) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["dry_run"] is True
    assert report["updated"] == 1
    assert store.find("users")[0]["role"] == "admin"


def test_verify_reports_buckets(store, capsys) -> None:
    store.insert_many("threats", [{"informationAssets": []}, {"name": "no assets"}])

    assert main(["verify", "threat-information-assets", "--json"], store_factory=lambda: store) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["counts"] == {"canonical": 1, "legacy": 0, "missing": 1}
    assert report["clean"] is False


def test_unreachable_store_exits_with_1(capsys) -> None:
    assert main(["run", "user-roles"], store_factory=unreachable) == 1
    assert "aborted" in capsys.readouterr().err


def test_outage_during_run_exits_with_1() -> None:
    assert main(["run", "user-roles"], store_factory=OutageStore) == 1


def test_unknown_migration_is_a_usage_error() -> None:
    with pytest.raises(SystemExit) as exc_info:
        main(["run", "drop-everything"])
    assert exc_info.value.code == 2
