"""CLI interface for syncing local files into Mixedbread stores."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import MxbaiClient
from .cli_progress import SyncProgressDisplay
from .config import UPLOAD_STRATEGIES, config
from .exceptions import MxbaiError
from .metadata import MetadataResolver, load_metadata_mapping, validate_metadata
from .output import OutputFormatter
from .store import resolve_store
from .sync import SyncEngine, SyncReporter, SyncStateReader
from .sync.analyzer import ChangeSet
from .utils import MAX_PARALLEL, MIN_PARALLEL

logger = logging.getLogger(__name__)


def _create_client(ctx: Any) -> MxbaiClient:
    return MxbaiClient(api_key=ctx.obj["api_key"], base_url=ctx.obj["base_url"])


@click.group()
@click.option("--api-key", "-k", envvar="MXBAI_API_KEY", help="Mixedbread API key")
@click.option("--base-url", envvar="MXBAI_BASE_URL", help="API base URL")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pymxbai")
@click.pass_context
def main(
    ctx: Any,
    api_key: Optional[str],
    base_url: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pymxbai - Keep Mixedbread stores in sync with local files."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["base_url"] = base_url
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pymxbai").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _load_metadata(
    metadata: Optional[str], metadata_file: Optional[str]
) -> Optional[MetadataResolver]:
    global_metadata = validate_metadata(metadata)
    file_metadata = load_metadata_mapping(Path(metadata_file)) if metadata_file else None
    if global_metadata is None and file_metadata is None:
        return None
    return MetadataResolver(global_metadata, file_metadata)


@main.command()
@click.argument("store")
@click.argument("patterns", nargs=-1, required=True)
@click.option(
    "--strategy",
    type=click.Choice(UPLOAD_STRATEGIES),
    default=None,
    help="Parsing strategy for uploaded files (default from config: fast)",
)
@click.option(
    "--from-git",
    "from_git",
    metavar="REF",
    help="Only sync files changed since this git revision",
)
@click.option(
    "--dry-run", is_flag=True, help="Show what would change without making changes"
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.option(
    "--force", "-f", is_flag=True, help="Re-upload all files, ignoring change detection"
)
@click.option("--metadata", help="Additional metadata for files as a JSON object")
@click.option(
    "--metadata-file",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON or YAML file mapping paths to per-file metadata",
)
@click.option(
    "--parallel",
    "-j",
    type=click.IntRange(MIN_PARALLEL, MAX_PARALLEL),
    default=None,
    help=f"Number of concurrent operations ({MIN_PARALLEL}-{MAX_PARALLEL})",
)
@click.pass_context
def sync(
    ctx: Any,
    store: str,
    patterns: tuple[str, ...],
    strategy: Optional[str],
    from_git: Optional[str],
    dry_run: bool,
    yes: bool,
    force: bool,
    metadata: Optional[str],
    metadata_file: Optional[str],
    parallel: Optional[int],
) -> None:
    """Sync files matching PATTERNS into STORE.

    Files are uploaded when new or changed, replaced when modified and
    removed from the store when deleted locally.

    Examples:
        pymxbai sync docs "docs/**/*.md"
        pymxbai sync docs docs --from-git HEAD~1 --yes
    """
    out: OutputFormatter = ctx.obj["out"]
    strategy = strategy or config.default_strategy
    parallel = parallel or config.default_parallel

    def confirm(change_set: ChangeSet) -> bool:
        return click.confirm("Apply these changes to the store?", err=True)

    async def run() -> Any:
        resolver = _load_metadata(metadata, metadata_file)
        show_progress = not out.quiet and not out.json_output
        async with _create_client(ctx) as client:
            engine = SyncEngine(
                client,
                concurrency=parallel,
                reporter=None if out.json_output else SyncReporter(out),
                progress=SyncProgressDisplay() if show_progress else None,
            )
            return await engine.run(
                store,
                list(patterns),
                strategy=strategy,
                from_revision=from_git,
                dry_run=dry_run,
                force=force,
                assume_yes=yes,
                metadata=resolver,
                confirm=confirm,
            )

    try:
        outcome = asyncio.run(run())
    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)
    except MxbaiError as e:
        out.error(str(e))
        ctx.exit(1)
    except OSError as e:
        logger.debug(f"Local file error during sync: {e!r}")
        out.error(f"Cannot read local files: {e}")
        ctx.exit(1)

    if out.json_output:
        out.output_json(outcome.to_dict())

    if outcome.cancelled or outcome.has_failures:
        ctx.exit(1)


@main.command()
@click.argument("store")
@click.pass_context
def status(ctx: Any, store: str) -> None:
    """Show the sync-managed files of STORE."""
    out: OutputFormatter = ctx.obj["out"]

    async def run() -> tuple[dict[str, Any], Any]:
        async with _create_client(ctx) as client:
            resolved = await resolve_store(client, store)
            synced = await SyncStateReader(client).list_synced_files(resolved["id"])
            return resolved, synced

    try:
        resolved, synced = asyncio.run(run())
    except KeyboardInterrupt:
        ctx.exit(130)
    except MxbaiError as e:
        out.error(str(e))
        ctx.exit(1)

    records = [synced[path] for path in sorted(synced)]
    if out.json_output:
        out.output_json(
            {
                "store": resolved.get("id"),
                "files": [
                    {
                        "path": r.file_path,
                        "file_id": r.file_id,
                        "file_hash": r.fingerprint,
                        "git_commit": r.git_commit,
                        "git_branch": r.git_branch,
                        "uploaded_at": r.marker.uploaded_at,
                    }
                    for r in records
                ],
            }
        )
        return

    if not records:
        out.info(f"No synced files in store {resolved.get('name', store)}")
        return

    rows = [
        [
            r.file_path,
            r.file_id,
            r.fingerprint.removeprefix("sha256:")[:12],
            (r.git_commit or "")[:7],
            r.marker.uploaded_at,
        ]
        for r in records
    ]
    out.print_table(
        f"Synced files in {resolved.get('name', store)}",
        ["Path", "File ID", "Hash", "Commit", "Uploaded"],
        rows,
    )


if __name__ == "__main__":
    main()
