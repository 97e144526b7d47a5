"""CLI entry point for papermirror.

Commands:
    papermirror sync      — mirror documents from Paperless-ngx
    papermirror result    — show a document's AI suggestions, reconciled
    papermirror attach    — store an AI suggestion payload for a document
    papermirror history   — list recent sync runs
    papermirror status    — quick overview of the local mirror
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from papermirror.config import (
    IMPORT_FILTER_TAGS,
    INSTANCE_ID,
    INSTANCE_NAME,
    MIRROR_DB_PATH,
    PAGE_SIZE,
    PAPERLESS_API_TOKEN,
    PAPERLESS_BASE_URL,
    parse_tag_ids,
)

logger = logging.getLogger("papermirror")


def _validate_config() -> None:
    """Fail loudly if required config is missing."""
    missing = []
    if not PAPERLESS_BASE_URL:
        missing.append("PAPERLESS_BASE_URL")
    if not PAPERLESS_API_TOKEN or PAPERLESS_API_TOKEN == "placeholder":
        missing.append("PAPERLESS_API_TOKEN")
    if missing:
        click.echo(f"Error: Missing required config: {', '.join(missing)}", err=True)
        click.echo("Set these in secrets/internal.env or the environment.", err=True)
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """papermirror — local mirror of a Paperless-ngx instance."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ------------------------------------------------------------------
# papermirror sync
# ------------------------------------------------------------------


@cli.command()
@click.option(
    "--filter-tags",
    default=None,
    help="Comma-separated tag ids a document must all carry (overrides config).",
)
@click.option("--page-size", default=PAGE_SIZE, show_default=True, help="Documents per page.")
def sync(filter_tags: str | None, page_size: int) -> None:
    """Mirror all documents from Paperless-ngx into the local store."""
    _validate_config()
    tags = parse_tag_ids(filter_tags) if filter_tags is not None else IMPORT_FILTER_TAGS
    asyncio.run(_sync_async(tags, page_size))


async def _sync_async(filter_tags: tuple[int, ...], page_size: int) -> None:
    from papermirror.integrations.paperless import PaperlessClient
    from papermirror.schemas.mirror import PaperlessInstance
    from papermirror.store.mirror import MirrorStore
    from papermirror.sync.engine import sync_instance

    instance = PaperlessInstance(
        id=INSTANCE_ID,
        name=INSTANCE_NAME,
        base_url=PAPERLESS_BASE_URL,
        import_filter_tags=filter_tags,
    )

    async with PaperlessClient(PAPERLESS_BASE_URL, PAPERLESS_API_TOKEN) as paperless:
        with MirrorStore(MIRROR_DB_PATH) as store:
            summary = await sync_instance(paperless, store, instance, page_size=page_size)

    click.echo(
        f"Done. Imported: {summary.imported}, Updated: {summary.updated}, "
        f"Unchanged: {summary.unchanged}, Total: {summary.total}, "
        f"Filtered out: {summary.filtered_out}"
    )


# ------------------------------------------------------------------
# papermirror result
# ------------------------------------------------------------------


@cli.command()
@click.argument("paperless_id", type=int)
def result(paperless_id: int) -> None:
    """Show the latest AI result for a document with its tags reconciled."""
    _validate_config()
    asyncio.run(_result_async(paperless_id))


async def _result_async(paperless_id: int) -> None:
    from papermirror.integrations.paperless import PaperlessClient
    from papermirror.router.tags import get_enriched_result
    from papermirror.store.mirror import MirrorStore

    with MirrorStore(MIRROR_DB_PATH) as store:
        document = store.get_document(INSTANCE_ID, paperless_id)
        if document is None:
            click.echo(f"Error: Document {paperless_id} is not mirrored. Run 'sync' first.", err=True)
            sys.exit(1)

        async with PaperlessClient(PAPERLESS_BASE_URL, PAPERLESS_API_TOKEN) as paperless:
            view = await get_enriched_result(store, paperless, document)

    if view is None:
        click.echo(f"Error: No processing result for document {paperless_id}.", err=True)
        sys.exit(1)

    click.echo(json.dumps(view, indent=2, ensure_ascii=False))


# ------------------------------------------------------------------
# papermirror attach
# ------------------------------------------------------------------


@cli.command()
@click.argument("paperless_id", type=int)
@click.argument("payload", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--provider", default=None, help="Name of the AI provider that produced it.")
def attach(paperless_id: int, payload: Path, provider: str | None) -> None:
    """Store an AI suggestion payload (JSON file) for a mirrored document."""
    from papermirror.schemas.suggestions import SuggestedChanges
    from papermirror.store.mirror import MirrorStore

    changes = SuggestedChanges.model_validate_json(payload.read_text(encoding="utf-8"))

    with MirrorStore(MIRROR_DB_PATH) as store:
        document = store.get_document(INSTANCE_ID, paperless_id)
        if document is None:
            click.echo(f"Error: Document {paperless_id} is not mirrored. Run 'sync' first.", err=True)
            sys.exit(1)
        stored = store.add_processing_result(
            document.id,
            changes,
            ai_provider=provider,
            original_title=document.title,
        )

    click.echo(f"Stored result {stored.id} for document {paperless_id}.")


# ------------------------------------------------------------------
# papermirror history
# ------------------------------------------------------------------


@cli.command()
@click.option("--limit", "-n", default=10, show_default=True, help="Number of runs to show.")
def history(limit: int) -> None:
    """List recent sync runs, newest first."""
    from papermirror.store.mirror import MirrorStore

    with MirrorStore(MIRROR_DB_PATH) as store:
        records = store.list_imports(INSTANCE_ID, limit=limit)

    if not records:
        click.echo("No sync runs recorded.")
        return

    for record in records:
        click.echo(
            f"{record.imported_at:%Y-%m-%d %H:%M:%S}  "
            f"imported={record.imported} updated={record.updated} "
            f"unchanged={record.unchanged} total={record.total_in_catalog}"
        )


# ------------------------------------------------------------------
# papermirror status
# ------------------------------------------------------------------


@cli.command()
def status() -> None:
    """Quick overview of the local mirror."""
    from papermirror.store.mirror import MirrorStore

    with MirrorStore(MIRROR_DB_PATH) as store:
        count = store.count_documents(INSTANCE_ID)
        last = store.list_imports(INSTANCE_ID, limit=1)

    click.echo("papermirror Status")
    click.echo(f"  Instance:           {INSTANCE_NAME} ({INSTANCE_ID})")
    click.echo(f"  Mirrored documents: {count}")
    if last:
        click.echo(f"  Last sync:          {last[0].imported_at:%Y-%m-%d %H:%M:%S}")
    else:
        click.echo("  Last sync:          never")
