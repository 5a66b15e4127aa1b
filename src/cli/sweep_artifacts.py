#!/usr/bin/env python3
"""CLI for reclaiming expired artifacts from the transient store.

Artifacts delivered by reference stay in the store until something removes
them; the server sweeps periodically, this command does it on demand.

Usage:
    # Show what would be removed
    python -m cli.sweep_artifacts --dry-run

    # Remove everything older than 30 minutes
    python -m cli.sweep_artifacts --max-age 30

    # List the store
    python -m cli.sweep_artifacts --list
"""

import argparse
import sys
import time
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from rich.console import Console
from rich.table import Table

from services.artifact_store import ArtifactStore
from utils.config import load_config
from utils.logging import setup_logging

console = Console()


def show_listing(store: ArtifactStore) -> None:
    """Display the store contents."""
    files = store.list_artifacts()
    if not files:
        console.print(f"[green]Store is empty:[/green] {store.root}")
        return

    now = time.time()
    table = Table(title=f"Artifacts in {store.root}")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Age", justify="right")

    total_size = 0
    for f in files:
        total_size += f.size
        table.add_row(f.name, f"{f.size / (1024 * 1024):.1f} MB", f"{(now - f.modified_at) / 60:.0f} min")

    console.print(table)
    console.print(f"[dim]{len(files)} files, {total_size / (1024 * 1024):.1f} MB total[/dim]")


def sweep(store: ArtifactStore, max_age_minutes: float, dry_run: bool) -> int:
    """Remove expired artifacts and report."""
    paths = store.sweep(max_age_minutes * 60, dry_run=dry_run)

    if not paths:
        console.print(f"[green]✓ Nothing older than {max_age_minutes:g} minutes[/green]")
        return 0

    for path in paths:
        console.print(f"  [dim]{path.name}[/dim]")

    if dry_run:
        console.print(f"[yellow]DRY RUN: would remove {len(paths)} files[/yellow]")
    else:
        console.print(f"[green]✓ Removed {len(paths)} files[/green]")
    return len(paths)


def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(description="Reclaim expired artifacts from the transient store")
    parser.add_argument("--storage-dir", default=config["storage_dir"], help="Artifact store directory")
    parser.add_argument(
        "--max-age",
        type=float,
        default=config["artifact_retention_minutes"],
        help="Age in minutes after which artifacts are removed",
    )
    parser.add_argument("--dry-run", action="store_true", help="Show what would be removed")
    parser.add_argument("--list", action="store_true", help="List the store and exit")
    args = parser.parse_args()

    setup_logging(config["log_level"])
    store = ArtifactStore(args.storage_dir)

    if args.list:
        show_listing(store)
        return

    sweep(store, args.max_age, args.dry_run)


if __name__ == "__main__":
    main()
