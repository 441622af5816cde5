"""Command line interface for content sync."""

import functools
import logging
from pathlib import Path
from typing import Any, Callable, Optional

import click

from . import events
from .api import ContentHubClient, SearchClient
from .config import config
from .context import SyncContext
from .events import EventBus
from .exceptions import ContentSyncConfigError, ContentSyncError
from .hashes import ChangeFlag
from .models import AssetTypes
from .output import OutputFormatter
from .sync.comparator import Comparator
from .sync.engine import SyncEngine
from .sync.manifests import build_manifest, write_manifest
from .sync.options import SyncOptions
from .utils import DEFAULT_CONCURRENT_LIMIT, DEFAULT_RETRY_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


@click.group()
@click.option(
    "--api-key", "-k", envvar="CONTENTSYNC_API_KEY", help="Content hub API key"
)
@click.option(
    "--api-url", envvar="CONTENTSYNC_API_URL", help="Content hub API URL"
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="contentsync")
@click.pass_context
def main(
    ctx: Any,
    api_key: Optional[str],
    api_url: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """Content Sync - pull and push assets between a folder and a content hub."""
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["api_url"] = api_url
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("contentsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.option(
    "--api-key",
    "-k",
    prompt="Enter your content hub API key",
    hide_input=True,
    help="Content hub API key",
)
@click.option("--api-url", help="Content hub API URL")
@click.pass_context
def init(ctx: Any, api_key: str, api_url: Optional[str]) -> None:
    """Initialize the content hub configuration.

    Stores the API key in ~/.config/contentsync/config.json for future use.
    """
    out: OutputFormatter = ctx.obj["out"]
    api_url = api_url or ctx.obj.get("api_url")

    out.info("Validating API key...")
    try:
        with ContentHubClient(api_key=api_key, api_url=api_url) as client:
            client.get_items(SyncContext(), SyncOptions(limit=1))
        out.success("API key is valid")
    except ContentSyncError as e:
        out.error(f"API key validation failed: {e}")
        if not click.confirm("Save API key anyway?", default=False):
            out.warning("Configuration cancelled.")
            ctx.exit(1)

    try:
        config.save_api_key(api_key, api_url)
    except (OSError, ContentSyncConfigError) as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved"),
            ("Config file", str(config.get_config_path())),
        ],
    )


@main.command()
@click.pass_context
def status(ctx: Any) -> None:
    """Show the configured content hub connection."""
    out: OutputFormatter = ctx.obj["out"]
    configured = bool(ctx.obj.get("api_key")) or config.is_configured()
    api_url = ctx.obj.get("api_url") or config.api_url
    if out.json_output:
        out.output_json({"configured": configured, "api_url": api_url})
    else:
        out.print_summary(
            "Configuration",
            [
                ("API URL", api_url),
                ("API key", "configured" if configured else "not configured"),
                ("Config file", str(config.get_config_path())),
            ],
        )
    if not configured:
        ctx.exit(1)


def sync_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the options shared by the transfer and listing commands."""
    decorators = [
        click.option(
            "--dir",
            "working_dir",
            type=click.Path(file_okay=False, path_type=Path),
            default=".",
            show_default=True,
            help="Local working directory",
        ),
        click.option(
            "--web", "asset_types", flag_value=AssetTypes.WEB.value, help="Web assets only"
        ),
        click.option(
            "--content",
            "asset_types",
            flag_value=AssetTypes.CONTENT.value,
            help="Content assets only",
        ),
        click.option("--ready", is_flag=True, help="Ready content items only"),
        click.option("--draft", is_flag=True, help="Draft content items only"),
        click.option("--path", "filter_path", help="Path prefix or wildcard pattern"),
        click.option(
            "--no-resources", is_flag=True, help="Do not sync resources"
        ),
        click.option(
            "--no-virtual-folder",
            is_flag=True,
            help="Store assets directly in the working directory",
        ),
        click.option(
            "--deletions", is_flag=True, help="Report deleted items and resources"
        ),
        click.option(
            "--concurrency",
            type=int,
            default=DEFAULT_CONCURRENT_LIMIT,
            show_default=True,
            help="Transfers running at the same time",
        ),
        click.option(
            "--retry-max-attempts",
            type=int,
            default=DEFAULT_RETRY_MAX_ATTEMPTS,
            show_default=True,
            help="Attempts for a retryable push or delete",
        ),
        click.option(
            "--retry-status",
            "retry_status_codes",
            type=int,
            multiple=True,
            help="Additional HTTP status code for which a push is retried",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def make_options(
    working_dir: Path,
    asset_types: Optional[str] = None,
    ready: bool = False,
    draft: bool = False,
    filter_path: Optional[str] = None,
    no_resources: bool = False,
    no_virtual_folder: bool = False,
    deletions: bool = False,
    concurrency: int = DEFAULT_CONCURRENT_LIMIT,
    retry_max_attempts: int = DEFAULT_RETRY_MAX_ATTEMPTS,
    retry_status_codes: tuple[int, ...] = (),
) -> SyncOptions:
    """Build sync options from command line values."""
    return SyncOptions(
        asset_types=AssetTypes(asset_types) if asset_types else AssetTypes.BOTH,
        filter_ready=ready,
        filter_draft=draft,
        filter_path=filter_path,
        disable_push_pull_resources=no_resources,
        no_virtual_folder=no_virtual_folder,
        deletions=deletions,
        concurrent_limit=concurrency,
        retry_max_attempts=retry_max_attempts,
        retry_status_codes=list(retry_status_codes),
        working_dir=working_dir,
    )


def create_engine(ctx: Any) -> SyncEngine:
    """Create the sync engine from the global options, or exit with an error."""
    out: OutputFormatter = ctx.obj["out"]
    try:
        client = ContentHubClient(
            api_key=ctx.obj.get("api_key"), api_url=ctx.obj.get("api_url")
        )
    except ContentSyncConfigError as e:
        out.error(str(e))
        ctx.exit(1)
    return SyncEngine(client, search_client=SearchClient(client))


def create_context(out: OutputFormatter) -> tuple[SyncContext, dict[str, int]]:
    """Create a context whose notifications are rendered by the formatter.

    Returns:
        The context and a counter per event name
    """
    bus = EventBus()
    counts = {name: 0 for name in events.EVENTS}

    def on_success(event: str, verb: str) -> Callable[..., None]:
        def handler(path: str, *args: Any) -> None:
            counts[event] += 1
            out.info(f"{verb} {path}")

        return handler

    def on_error(event: str, verb: str) -> Callable[..., None]:
        def handler(path: str, error: Exception) -> None:
            counts[event] += 1
            out.warning(f"Failed to {verb} {path}: {error}")

        return handler

    def on_notice(event: str, label: str) -> Callable[..., None]:
        def handler(path: str, *args: Any) -> None:
            counts[event] += 1
            if not out.json_output:
                out.print(f"{label} {path}")

        return handler

    bus.subscribe(events.PULLED, on_success(events.PULLED, "Pulled"))
    bus.subscribe(events.PUSHED, on_success(events.PUSHED, "Pushed"))
    bus.subscribe(
        events.RESOURCE_PULLED, on_success(events.RESOURCE_PULLED, "Pulled resource")
    )
    bus.subscribe(
        events.RESOURCE_PUSHED, on_success(events.RESOURCE_PUSHED, "Pushed resource")
    )
    bus.subscribe(events.PULLED_ERROR, on_error(events.PULLED_ERROR, "pull"))
    bus.subscribe(events.PUSHED_ERROR, on_error(events.PUSHED_ERROR, "push"))
    bus.subscribe(
        events.RESOURCE_PULLED_ERROR,
        on_error(events.RESOURCE_PULLED_ERROR, "pull resource"),
    )
    bus.subscribe(
        events.RESOURCE_PUSHED_ERROR,
        on_error(events.RESOURCE_PUSHED_ERROR, "push resource"),
    )
    bus.subscribe(
        events.RESOURCE_LOCAL_ONLY,
        on_notice(events.RESOURCE_LOCAL_ONLY, "local only:"),
    )
    bus.subscribe(events.ADDED, on_notice(events.ADDED, "added:"))
    bus.subscribe(events.REMOVED, on_notice(events.REMOVED, "removed:"))
    bus.subscribe(events.DIFF, on_notice(events.DIFF, "diff:"))
    return SyncContext(events=bus, name="cli"), counts


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Report content sync errors and exit with status 1."""

    @functools.wraps(func)
    def wrapper(ctx: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            return func(ctx, *args, **kwargs)
        except ContentSyncError as e:
            ctx.obj["out"].error(str(e))
            ctx.exit(1)

    return wrapper


@main.command()
@sync_options
@click.option(
    "--modified/--all",
    default=True,
    help="Pull only items modified since the last pull (default) or all items",
)
@click.option("--id", "item_id", help="Pull a single item by ID")
@click.option(
    "--manifest",
    type=click.Path(exists=True, dir_okay=False),
    help="Pull the items listed in a manifest file",
)
@click.pass_context
@handle_errors
def pull(
    ctx: Any,
    modified: bool,
    item_id: Optional[str],
    manifest: Optional[str],
    **kwargs: Any,
) -> None:
    """Pull items and resources from the content hub."""
    out: OutputFormatter = ctx.obj["out"]
    options = make_options(**kwargs)
    engine = create_engine(ctx)
    context, counts = create_context(out)

    if item_id:
        metadata = engine.pull_item(context, item_id, options)
        if metadata is None:
            out.warning(f"Item {item_id} is a system item and was not pulled")
        else:
            out.success(f"Pulled {metadata.get('path')}")
        return

    if manifest:
        records = engine.pull_manifest_items(context, manifest, options)
    elif modified:
        records = engine.pull_modified_items(context, options)
    else:
        records = engine.pull_all_items(context, options)

    failed = sum(1 for record in records if not record.ok)
    if out.json_output:
        out.output_json(
            {
                "pulled": len(records) - failed,
                "failed": failed,
                "resources": counts[events.RESOURCE_PULLED],
            }
        )
    else:
        summary = [
            ("Pulled", f"{len(records) - failed} items"),
            ("Resources", f"{counts[events.RESOURCE_PULLED]} pulled"),
        ]
        if failed:
            summary.append(("Failed", f"{failed} items"))
        out.print_summary("Pull Complete", summary)

    if failed or counts[events.RESOURCE_PULLED_ERROR]:
        ctx.exit(1)


@main.command()
@sync_options
@click.option(
    "--modified/--all",
    default=True,
    help="Push only items modified since the last transfer (default) or all items",
)
@click.option("--file", "asset_path", help="Push a single asset by its local path")
@click.pass_context
@handle_errors
def push(
    ctx: Any, modified: bool, asset_path: Optional[str], **kwargs: Any
) -> None:
    """Push local items and resources to the content hub."""
    out: OutputFormatter = ctx.obj["out"]
    options = make_options(**kwargs)
    engine = create_engine(ctx)
    context, counts = create_context(out)

    if asset_path:
        metadata = engine.push_item(context, asset_path, options)
        if metadata is None:
            out.warning(f"{asset_path} is a system item and was not pushed")
        else:
            out.success(f"Pushed {asset_path}")
        return

    if modified:
        pushed = engine.push_modified_items(context, options)
    else:
        pushed = engine.push_all_items(context, options)

    failed = counts[events.PUSHED_ERROR]
    if out.json_output:
        out.output_json(
            {
                "pushed": len(pushed),
                "failed": failed,
                "resources": counts[events.RESOURCE_PUSHED],
            }
        )
    else:
        summary = [
            ("Pushed", f"{len(pushed)} items"),
            ("Resources", f"{counts[events.RESOURCE_PUSHED]} pushed"),
        ]
        if failed:
            summary.append(("Failed", f"{failed} items"))
        out.print_summary("Push Complete", summary)

    if failed or counts[events.RESOURCE_PUSHED_ERROR]:
        ctx.exit(1)


@main.command(name="list")
@sync_options
@click.option(
    "--remote/--local", default=True, help="List remote (default) or local items"
)
@click.option("--modified", is_flag=True, help="Only new and modified items")
@click.option("--deleted", is_flag=True, help="Only items deleted since the last sync")
@click.option(
    "--write-manifest",
    "manifest_path",
    type=click.Path(dir_okay=False),
    help="Write the remote items to a manifest file",
)
@click.pass_context
@handle_errors
def list_items(
    ctx: Any,
    remote: bool,
    modified: bool,
    deleted: bool,
    manifest_path: Optional[str],
    **kwargs: Any,
) -> None:
    """List remote or local items."""
    out: OutputFormatter = ctx.obj["out"]
    options = make_options(**kwargs)
    engine = create_engine(ctx)
    context, _ = create_context(out)
    flags = [ChangeFlag.NEW, ChangeFlag.MODIFIED]

    if manifest_path:
        if not remote:
            raise click.UsageError("--write-manifest requires --remote")
        if modified:
            items = engine.list_modified_remote_items(context, flags, options)
        else:
            items = engine.list_remote_items(context, options)
        resources = (
            engine.list_remote_resources(context, options)
            if options.resources_enabled
            else []
        )
        manifest = build_manifest(items, resources)
        write_manifest(manifest_path, manifest)
        names = [engine.local_store.get_asset_path(item) for item in items]
    elif remote:
        if deleted:
            names = engine.list_remote_deleted_names(context, options)
        elif modified:
            names = engine.list_modified_remote_item_names(context, flags, options)
        else:
            names = engine.list_remote_item_names(context, options)
    else:
        if deleted:
            names = engine.list_local_deleted_names(context, options)
        elif modified:
            names = engine.list_modified_local_item_names(context, flags, options)
        else:
            names = engine.list_local_item_names(context, options)

    if out.json_output:
        out.output_json(names)
    else:
        for name in names:
            out.print(name)
        out.info(f"{len(names)} items")


@main.command()
@click.option("--source", "-s", required=True, help="Directory, API URL or manifest")
@click.option("--target", "-t", required=True, help="Directory, API URL or manifest")
@click.option("--web", "asset_types", flag_value=AssetTypes.WEB.value)
@click.option("--content", "asset_types", flag_value=AssetTypes.CONTENT.value)
@click.option("--ready", is_flag=True, help="Ready content items only")
@click.option("--draft", is_flag=True, help="Draft content items only")
@click.pass_context
@handle_errors
def compare(
    ctx: Any,
    source: str,
    target: str,
    asset_types: Optional[str],
    ready: bool,
    draft: bool,
) -> None:
    """Compare two directories, content hubs or manifests."""
    out: OutputFormatter = ctx.obj["out"]
    context, _ = create_context(out)
    options = make_options(Path("."), asset_types=asset_types, ready=ready, draft=draft)
    api_key = ctx.obj.get("api_key")

    def client_factory(url: str) -> ContentHubClient:
        return ContentHubClient(api_key=api_key, api_url=url)

    result = Comparator(client_factory=client_factory).compare(
        context, source, target, options
    )
    if out.json_output:
        out.output_json(result.to_dict())
    else:
        out.print_summary(
            "Compare Complete",
            [
                ("Differences", str(result.diff_count)),
                ("Total paths", str(result.total_count)),
            ],
        )
    if result.diff_count:
        ctx.exit(1)


@main.command()
@click.argument("path")
@click.option("--local", is_flag=True, help="Delete the local asset instead")
@click.option(
    "--dir",
    "working_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Local working directory",
)
@click.option(
    "--retry-max-attempts", type=int, default=DEFAULT_RETRY_MAX_ATTEMPTS
)
@click.pass_context
@handle_errors
def delete(
    ctx: Any, path: str, local: bool, working_dir: Path, retry_max_attempts: int
) -> None:
    """Delete an item on the content hub (or locally with --local)."""
    out: OutputFormatter = ctx.obj["out"]
    options = make_options(working_dir, retry_max_attempts=retry_max_attempts)
    engine = create_engine(ctx)
    context, _ = create_context(out)

    if local:
        record = engine.delete_local_items(context, [path], options)[0]
        if not record.ok:
            out.error(str(record.error))
            ctx.exit(1)
        out.success(f"Deleted local {path}")
        return

    out.success(engine.delete_remote_item(context, path, options))


if __name__ == "__main__":
    main()
