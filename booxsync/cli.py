"""CLI interface for booxsync."""

import os
import posixpath
import sys
from typing import Dict, List

import click
from filelock import FileLock, Timeout

from .client import LibraryClient
from .config import parse_config
from .exceptions import BooxSyncError, ConfigError, HostUnreachableError
from .logger import setup_logging
from .models import RemoteTreeIndex, SyncCandidate
from .reconcile import LOCK_FILE_NAME
from .sync import SyncManager

UNREACHABLE_MESSAGE = (
    "Boox device unreachable. Is it asleep? "
    "If not, try opening the BooxDrop app in the browser"
)


@click.group()
@click.option('--config', '-c', 'config_file', default='config.json',
              type=click.Path(dir_okay=False),
              help='Config file (default: ./config.json)')
@click.option('--debug', is_flag=True, default=False,
              help='Enable debug output')
@click.pass_context
def cli(ctx, config_file, debug):
    """booxsync - Upload documents missing from a Boox library.

    \b
    Quick Start:
      booxsync diff                      # List local files not in the library
      booxsync sync                      # Upload them
      booxsync tree                      # Show the library

    \b
    config.json:
      {"host": "192.168.1.20", "syncRoot": "/home/me/Books",
       "skipPaths": ["Drafts"]}
    """
    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config_file
    ctx.obj['debug'] = debug


def _load_config(ctx, require_sync_root: bool = True, **overrides):
    try:
        config = parse_config(ctx.obj['config_file'], overrides, require_sync_root)
    except ConfigError as e:
        click.echo(f"Invalid config: {e}", err=True)
        sys.exit(1)
    setup_logging(ctx.obj['debug'] or config.debug)
    return config


def _fail(error: BaseException) -> None:
    if isinstance(error, HostUnreachableError):
        click.echo(UNREACHABLE_MESSAGE, err=True)
    else:
        click.echo(f"Error: {error}", err=True)
    sys.exit(1)


@cli.command()
@click.option('--host', help='Device host, overrides config')
@click.option('--sync-root', help='Local folder, overrides config')
@click.option('--workers', '-w', type=int,
              help='Max concurrent listing requests (default: unbounded)')
@click.option('--timeout', type=float,
              help='Per-request timeout in seconds (0 = none)')
@click.pass_context
def diff(ctx, host, sync_root, workers, timeout):
    """List local files that are not in the library.

    \b
    Examples:
      booxsync diff
      booxsync diff --host 192.168.1.20 --sync-root ~/Books
    """
    config = _load_config(ctx, host=host, syncRoot=sync_root,
                          maxWorkers=workers, timeout=timeout)

    with LibraryClient(config.host, timeout=config.timeout) as client:
        result = SyncManager.from_config(client, config).run(upload=False)

    if not result.ok:
        _fail(result.error)

    click.echo(f"{len(result.candidates)} files not in library")
    for candidate in result.candidates:
        click.echo(candidate.local_path)


@cli.command()
@click.option('--host', help='Device host, overrides config')
@click.option('--sync-root', help='Local folder, overrides config')
@click.option('--workers', '-w', type=int,
              help='Max concurrent listing requests (default: unbounded)')
@click.option('--timeout', type=float,
              help='Per-request timeout in seconds (0 = none)')
@click.option('--dry-run', is_flag=True, default=False,
              help='Do everything except upload')
@click.option('--create-folders', is_flag=True, default=False,
              help='Create library folders that do not exist yet')
@click.pass_context
def sync(ctx, host, sync_root, workers, timeout, dry_run, create_folders):
    """Upload local files that are missing from the library.

    \b
    Examples:
      booxsync sync
      booxsync sync --dry-run
      booxsync sync --create-folders

    \b
    Notes:
      - Files are uploaded one at a time into their matching library folder
      - Files whose folder does not exist in the library are skipped,
        unless --create-folders is given
      - Files directly in the sync root are always skipped
      - Symlinked folders are not followed
      - The first failed request stops the run
    """
    config = _load_config(ctx, host=host, syncRoot=sync_root,
                          maxWorkers=workers, timeout=timeout, dryRun=dry_run or None,
                          createFolders=create_folders or None)

    def report(event: str, candidate: SyncCandidate) -> None:
        if event == 'skipped':
            click.echo(f"skipping '{candidate.local_path}': "
                       f"parent folder does not exist in library", err=True)
        elif event == 'creating':
            folder = posixpath.dirname(candidate.relative_path)
            verb = "pretending to create" if config.dry_run else "creating"
            click.echo(f"{verb} folder {folder} for {candidate.local_path}")
        elif config.dry_run:
            click.echo(f"pretending to upload {candidate.local_path} to {candidate.parent_id}")
        else:
            click.echo(f"uploading {candidate.local_path} to {candidate.parent_id}")

    lock = FileLock(os.path.join(config.sync_root, LOCK_FILE_NAME), timeout=0)
    try:
        with lock:
            with LibraryClient(config.host, timeout=config.timeout) as client:
                manager = SyncManager.from_config(client, config, on_progress=report)
                result = manager.diff()
                if result.ok:
                    click.echo(f"{len(result.candidates)} files missing in library")
                    manager.apply(result)
    except Timeout:
        click.echo(f"Another sync is running on {config.sync_root}", err=True)
        sys.exit(1)

    if not result.ok:
        _fail(result.error)

    click.echo("library synced")


@cli.command()
@click.option('--host', help='Device host, overrides config')
@click.option('--workers', '-w', type=int,
              help='Max concurrent listing requests (default: unbounded)')
@click.option('--timeout', type=float,
              help='Per-request timeout in seconds (0 = none)')
@click.option('--depth', '-d', default=0, type=int,
              help='Max levels to show (0 = unlimited)')
@click.pass_context
def tree(ctx, host, workers, timeout, depth):
    """Show the folders and books in the library.

    \b
    Examples:
      booxsync tree
      booxsync tree -d 1                 # Top level folders only
    """
    config = _load_config(ctx, require_sync_root=False, host=host,
                          maxWorkers=workers, timeout=timeout)

    try:
        with LibraryClient(config.host, timeout=config.timeout) as client:
            index = SyncManager.from_config(client, config).build_remote_index()
    except BooxSyncError as e:
        _fail(e)

    for line in format_tree(index, depth):
        click.echo(line)
    click.echo(f"Total: {len(index)} file(s) in {len(index.folder_ids)} folder(s)")


def format_tree(index: RemoteTreeIndex, depth: int = 0) -> List[str]:
    """Render a remote index as indented lines.

    Args:
        index: Remote tree index
        depth: Levels to render (0 = all)

    Returns:
        One line per folder ("name/  [id]") and file, children indented
    """
    children: Dict[str, List[str]] = {}
    folders = set()
    for folder in index.folder_ids:
        # Register intermediate folders that were never listed themselves
        parts = folder.split('/')
        for i in range(1, len(parts) + 1):
            folders.add('/'.join(parts[:i]))
    for folder in folders:
        children.setdefault(posixpath.dirname(folder), []).append(folder)
    for path in index.files:
        children.setdefault(posixpath.dirname(path), []).append(path)

    lines: List[str] = []

    def render(parent: str, level: int) -> None:
        if depth and level >= depth:
            return
        for path in sorted(children.get(parent, [])):
            name = posixpath.basename(path)
            indent = '  ' * level
            if path in folders:
                folder_id = index.folder_ids.get(path)
                lines.append(f"{indent}{name}/  [{folder_id}]" if folder_id else f"{indent}{name}/")
                render(path, level + 1)
            else:
                lines.append(f"{indent}{name}")

    render('', 0)
    return lines


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
