"""Command-line interface for vldedupe.

Provides CLI commands for scoring listing pairs, batch detection into a
SQLite store, image hashing, review, metrics and configuration management.
"""

import importlib.metadata
import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn

import click

from vldedupe.api import dedupe, read_listings, score_pair
from vldedupe.audit import AuditLogger
from vldedupe.config import load_config
from vldedupe.models import ListingData
from vldedupe.storage import SQLiteStore

__all__ = ["cli"]

try:
    __version__ = importlib.metadata.version("vldedupe")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development

DEFAULT_DB_PATH = "vldedupe.db"
MAX_YEAR_GAP = 1

_db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_DB_PATH,
    show_default=True,
    help="SQLite database file",
)

_log_option = click.option(
    "--log",
    "log_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Append audit events to this JSONL file",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _open(db_path: str, log_path: str | None) -> Iterator[tuple[SQLiteStore, AuditLogger | None]]:
    store = SQLiteStore(db_path)
    logger = AuditLogger(Path(log_path)) if log_path else None
    try:
        yield store, logger
    finally:
        if logger:
            logger.close()
        store.close()


def _fail(error: Exception) -> NoReturn:
    click.secho(f"✗ Error: {error}", fg="red", err=True)
    sys.exit(1)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True))


def _read_listing(path: Path) -> ListingData:
    with path.open("r", encoding="utf-8") as f:
        return ListingData.from_dict(json.load(f))


def same_make_adjacent_year(listing: ListingData, other: ListingData) -> bool:
    """Candidate prefilter: same make (when both known), model years within one."""
    if listing.make and other.make and listing.make.casefold() != other.make.casefold():
        return False
    if listing.year is not None and other.year is not None:
        return abs(listing.year - other.year) <= MAX_YEAR_GAP
    return True


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="vldedupe")
def cli() -> None:
    """Duplicate detection for scraped vehicle listings.

    Use 'vldedupe COMMAND --help' for command-specific help.
    """


@cli.command()
@click.argument("source_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("target_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON configuration (default weights and thresholds if omitted)",
)
def score(source_path: Path, target_path: Path, config_path: Path | None) -> None:
    """Score two listings (JSON files) and print the MatchResult.

    Examples
    --------
        vldedupe score a.json b.json
        vldedupe score a.json b.json --config strict.json
    """
    try:
        config = load_config(config_path) if config_path else None
        result = score_pair(_read_listing(source_path), _read_listing(target_path), config)
    except Exception as e:
        _fail(e)
    _echo_json(result.to_dict())


@cli.command()
@click.argument("listings_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@_db_option
@_log_option
@click.option("--workers", "-w", type=click.IntRange(min=1), default=4, show_default=True)
@click.option("--timeout", type=float, default=None, help="Per-listing lookup timeout (s)")
@click.option("--verbose", "-v", is_flag=True, help="Print one line per listing")
def detect(
    listings_path: Path,
    db_path: str,
    log_path: str | None,
    workers: int,
    timeout: float | None,
    verbose: bool,
) -> None:
    """Detect duplicates among listings in LISTINGS_PATH (JSONL).

    Candidates of a listing are the other listings of the same make whose
    model year is within one year.

    Examples
    --------
        vldedupe detect listings.jsonl --db dedupe.db --log events.jsonl
    """
    from vldedupe.engine import BatchSummary

    try:
        results = dedupe(
            read_listings(listings_path),
            db_path,
            log_path=log_path,
            candidate_filter=same_make_adjacent_year,
            max_workers=workers,
            timeout=timeout,
        )
    except Exception as e:
        _fail(e)

    if verbose:
        for result in results:
            if result.success:
                click.echo(
                    f"  {result.listing_id}: {len(result.duplicates)} duplicates, "
                    f"{len(result.review_items)} for review "
                    f"({result.candidates_checked} candidates)",
                    err=True,
                )
            else:
                click.secho(f"  {result.listing_id}: {result.error_message}", fg="red", err=True)

    summary = BatchSummary.from_results(results)
    color = "green" if summary.failed == 0 else "yellow"
    click.secho(
        f"✓ Checked {summary.listings} listings "
        f"({summary.duplicates} duplicates, {summary.review_items} for review, "
        f"{summary.failed} failed)",
        fg=color,
    )


@cli.command(name="hash")
@click.argument("images", nargs=-1, required=True)
@click.option("--timeout", type=float, default=15.0, show_default=True)
def hash_images(images: tuple[str, ...], timeout: float) -> None:
    """Print the perceptual hash of image files or http(s) URLs."""
    from vldedupe.images import ImageHasher

    hasher = ImageHasher(timeout=timeout)
    urls = [image for image in images if image.startswith(("http://", "https://"))]
    hashes = hasher.hash_urls(urls) if urls else {}

    failed = False
    for image in images:
        if image in hashes:
            image_hash = hashes[image]
        else:
            path = Path(image)
            image_hash = None
            if path.is_file():
                image_hash = hasher.hash_bytes(path.read_bytes(), source=image)
        if image_hash is None:
            failed = True
            click.secho(f"{image}\t✗ cannot hash", fg="red", err=True)
        else:
            click.echo(f"{image}\t{image_hash}")

    if failed:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@cli.group()
def review() -> None:
    """Inspect and adjudicate the review queue."""


@review.command(name="list")
@_db_option
@click.option("--skip", type=click.IntRange(min=0), default=0, show_default=True)
@click.option("--take", type=click.IntRange(min=1), default=20, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
def review_list(db_path: str, skip: int, take: int, as_json: bool) -> None:
    """List pending review items, highest priority first."""
    from vldedupe.review import ReviewService

    with _open(db_path, None) as (store, _):
        service = ReviewService(store)
        items = service.list_pending(skip=skip, take=take)
        total = service.pending_count()

    if as_json:
        _echo_json({"total": total, "items": [item.to_dict() for item in items]})
        return

    click.echo(f"{total} pending review items")
    for item in items:
        click.echo(
            f"  {item.id}  priority={item.priority:3d}  score={item.score:.3f}  "
            f"{item.listing_a} <-> {item.listing_b}"
        )


@review.command(name="resolve")
@click.argument("review_id")
@click.option(
    "--decision",
    type=click.Choice(["same_vehicle", "different_vehicle"]),
    required=True,
)
@click.option("--reviewer", default=None)
@click.option("--notes", default=None)
@_db_option
@_log_option
def review_resolve(
    review_id: str,
    decision: str,
    reviewer: str | None,
    notes: str | None,
    db_path: str,
    log_path: str | None,
) -> None:
    """Resolve a pending review item."""
    from vldedupe.review import ReviewService

    try:
        with _open(db_path, log_path) as (store, logger):
            item = ReviewService(store, logger=logger).resolve(
                review_id, decision, reviewer=reviewer, notes=notes
            )
    except Exception as e:
        _fail(e)
    click.secho(f"✓ Resolved {item.id} as {item.decision.value}", fg="green")


@review.command(name="dismiss")
@click.argument("review_id")
@click.option("--reason", default=None)
@_db_option
@_log_option
def review_dismiss(review_id: str, reason: str | None, db_path: str, log_path: str | None) -> None:
    """Dismiss a pending review item."""
    from vldedupe.review import ReviewService

    try:
        with _open(db_path, log_path) as (store, logger):
            item = ReviewService(store, logger=logger).dismiss(review_id, reason=reason)
    except Exception as e:
        _fail(e)
    click.secho(f"✓ Dismissed {item.id}", fg="green")


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@cli.group()
def metrics() -> None:
    """Accuracy metrics of past decisions."""


@metrics.command(name="show")
@_db_option
@click.option("--thresholds", is_flag=True, help="Include precision per score cut-off")
def metrics_show(db_path: str, thresholds: bool) -> None:
    """Print current accuracy metrics (JSON)."""
    from vldedupe.metrics import MetricsService

    with _open(db_path, None) as (store, _):
        service = MetricsService(store)
        data: dict[str, Any] = service.calculate_current().to_dict()
        if thresholds:
            data["threshold_analysis"] = [point.to_dict() for point in service.threshold_analysis()]
    _echo_json(data)


@metrics.command(name="snapshot")
@_db_option
@_log_option
def metrics_snapshot(db_path: str, log_path: str | None) -> None:
    """Record a metrics snapshot."""
    from vldedupe.metrics import MetricsService

    with _open(db_path, log_path) as (store, logger):
        snapshot = MetricsService(store, logger=logger).record_snapshot()
    click.secho(
        f"✓ Snapshot {snapshot.id}: precision={snapshot.precision:.3f} "
        f"recall={snapshot.recall:.3f} f1={snapshot.f1_score:.3f}",
        fg="green",
    )


@metrics.command(name="history")
@_db_option
@click.option("--since", type=click.DateTime(), default=None, help="Start (UTC)")
@click.option("--until", type=click.DateTime(), default=None, help="End (UTC)")
def metrics_history(db_path: str, since: datetime | None, until: datetime | None) -> None:
    """Print recorded snapshots (JSON), oldest first."""
    from datetime import UTC

    from vldedupe.metrics import MetricsService

    start = since.replace(tzinfo=UTC) if since else None
    end = until.replace(tzinfo=UTC) if until else None
    with _open(db_path, None) as (store, _):
        snapshots = MetricsService(store).history(start=start, end=end)
    _echo_json([snapshot.to_dict() for snapshot in snapshots])


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@cli.group()
def config() -> None:
    """Manage versioned deduplication configurations."""


@config.command(name="show")
@_db_option
@click.option("--id", "config_id", default=None, help="Config id (default: active config)")
@click.option("--all", "show_all", is_flag=True, help="List every stored version")
def config_show(db_path: str, config_id: str | None, show_all: bool) -> None:
    """Print a configuration (JSON)."""
    from vldedupe.engine import ConfigRegistry

    try:
        with _open(db_path, None) as (store, _):
            registry = ConfigRegistry(store)
            if show_all:
                data: Any = [stored.to_dict() for stored in registry.list_configs()]
            elif config_id:
                data = registry.get(config_id).to_dict()
            else:
                data = registry.active().to_dict()
    except Exception as e:
        _fail(e)
    _echo_json(data)


@config.command(name="import")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--activate", is_flag=True, help="Activate the imported version")
@_db_option
@_log_option
def config_import(config_path: Path, activate: bool, db_path: str, log_path: str | None) -> None:
    """Validate and store a JSON configuration as a new version."""
    from vldedupe.engine import ConfigRegistry

    try:
        with _open(db_path, log_path) as (store, logger):
            registry = ConfigRegistry(store, logger=logger)
            stored = registry.import_file(config_path, activate=activate)
    except Exception as e:
        _fail(e)
    state = "active" if stored.is_active else "inactive"
    click.secho(f"✓ Stored {stored.name} v{stored.version} ({stored.id}, {state})", fg="green")


@config.command(name="activate")
@click.argument("config_id")
@_db_option
@_log_option
def config_activate(config_id: str, db_path: str, log_path: str | None) -> None:
    """Make a stored configuration the active one."""
    from vldedupe.engine import ConfigRegistry

    try:
        with _open(db_path, log_path) as (store, logger):
            activated = ConfigRegistry(store, logger=logger).activate(config_id)
    except Exception as e:
        _fail(e)
    click.secho(f"✓ Activated {activated.name} v{activated.version}", fg="green")


if __name__ == "__main__":
    cli()
