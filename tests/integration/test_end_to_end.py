"""Integration tests for the detect, review and metrics feedback loop.

These tests drive the CLI against a real SQLite file and audit log.
"""

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner

from vldedupe.cli.main import cli
from vldedupe.models import ListingData
from vldedupe.review import ReviewStatus
from vldedupe.storage import SQLiteStore


@pytest.fixture
def workspace(tmp_path: Path, make_listing: Callable[..., ListingData]) -> dict[str, Path]:
    """Listings file plus database and log paths."""
    listings = [
        make_listing("A"),
        make_listing("B", source="kijiji", vin="2HGFC2F59KH123456"),
        make_listing("C", price=17000.0),
        make_listing("E", source="kijiji", vin="2HGFC2F59KH123456", title="Civic LX 2019"),
        make_listing(
            "D",
            title="2012 Ford F-150 XLT",
            make="Ford",
            model="F-150",
            year=2012,
            price=35000.0,
            latitude=45.5017,
            longitude=-73.5673,
        ),
    ]
    path = tmp_path / "listings.jsonl"
    with path.open("w", encoding="utf-8") as f:
        for listing in listings:
            f.write(json.dumps(listing.to_dict()) + "\n")
    return {
        "listings": path,
        "db": tmp_path / "dedupe.db",
        "log": tmp_path / "events.jsonl",
    }


def _invoke(*args: str) -> str:
    result = CliRunner().invoke(cli, list(args))
    assert result.exit_code == 0, result.output
    return result.output


@pytest.mark.integration
def test_detect_review_metrics_loop(workspace: dict[str, Path]) -> None:
    """Test reviewer verdicts flow into the recorded metrics."""
    db, log = str(workspace["db"]), str(workspace["log"])

    summary = _invoke("detect", str(workspace["listings"]), "--db", db, "--log", log)
    assert "Checked 5 listings" in summary
    assert "0 failed" in summary

    queue = json.loads(_invoke("review", "list", "--db", db, "--json"))
    assert queue["total"] > 0
    pairs = {(item["listing_a"], item["listing_b"]): item for item in queue["items"]}
    review_id = pairs[("A", "C")]["id"]

    _invoke(
        "review", "resolve", review_id,
        "--decision", "different_vehicle",
        "--reviewer", "alice",
        "--db", db, "--log", log,
    )  # fmt: skip
    snapshot = _invoke("metrics", "snapshot", "--db", db, "--log", log)
    history = json.loads(_invoke("metrics", "history", "--db", db))

    assert "Snapshot 1" in snapshot
    assert len(history) == 1
    assert history[0]["confirmed_not_duplicates"] == 1
    assert history[0]["pending_reviews"] == queue["total"] - 1

    with SQLiteStore(workspace["db"]) as store:
        item = store.get_review_item(review_id)
        assert item.status is ReviewStatus.RESOLVED
        assert item.state.reviewer == "alice"
        assert store.get_duplicate_match("A", "D") is None

    with workspace["log"].open() as f:
        events = [json.loads(line)["event"] for line in f]
    assert events[0] == "batch_started"
    assert "review_resolved" in events
    assert events[-1] == "metrics_snapshot_recorded"


@pytest.mark.integration
def test_rerun_after_review_keeps_decisions(workspace: dict[str, Path]) -> None:
    """Test a second detection run neither duplicates nor reopens anything."""
    db = str(workspace["db"])
    _invoke("detect", str(workspace["listings"]), "--db", db)
    queue = json.loads(_invoke("review", "list", "--db", db, "--json"))
    _invoke("review", "dismiss", queue["items"][0]["id"], "--reason", "sold", "--db", db)

    with SQLiteStore(workspace["db"]) as store:
        matches_before = len(store.list_duplicate_matches())
        reviews_before = store.count_review_items()

    _invoke("detect", str(workspace["listings"]), "--db", db)

    with SQLiteStore(workspace["db"]) as store:
        assert len(store.list_duplicate_matches()) == matches_before
        assert store.count_review_items() == reviews_before
        assert store.count_review_items(status=ReviewStatus.DISMISSED) == 1
    rerun_queue = json.loads(_invoke("review", "list", "--db", db, "--json"))
    assert rerun_queue["total"] == queue["total"] - 1


@pytest.mark.integration
def test_config_change_reclassifies_new_pairs(workspace: dict[str, Path], tmp_path: Path) -> None:
    """Test activating a looser config turns review pairs into duplicates."""
    db = str(workspace["db"])
    loose = tmp_path / "loose.json"
    loose.write_text(
        json.dumps({"name": "loose", "overall_match_threshold": 0.75, "review_threshold": 0.5}),
        encoding="utf-8",
    )

    _invoke("config", "import", str(loose), "--activate", "--db", db)
    _invoke("detect", str(workspace["listings"]), "--db", db)

    with SQLiteStore(workspace["db"]) as store:
        assert store.get_duplicate_match("A", "C") is not None
        assert store.get_review_for_pair("A", "C") is None
