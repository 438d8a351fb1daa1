"""Command-line entry point for package comparison."""

import asyncio
import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pkgcompare.compare import build_compare_result
from pkgcompare.config import Config, load_config
from pkgcompare.differ import FileDiffer
from pkgcompare.fetcher import (
    FileTooLargeError,
    RegistryError,
    RegistryFetcher,
    parse_version_range,
    tree_from_listing,
)
from pkgcompare.hunks import count_diff_stats, insert_skip_blocks
from pkgcompare.models import (
    CompareResult,
    FileDiff,
    FileDiffResult,
    FileTreeNode,
    Hunk,
    SegmentKind,
    SkipBlock,
)
from pkgcompare.parser import parse_unified_diff

logger = logging.getLogger(__name__)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn expected failures into a red message and exit code 1."""
    try:
        yield
    except (FileNotFoundError, FileTooLargeError, RegistryError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1) from None
    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(1) from None


def diff_overrides(no_merge: bool, max_change_ratio: float | None) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if no_merge:
        overrides["merge_modified_lines"] = False
    if max_change_ratio is not None:
        overrides["max_change_ratio"] = max_change_ratio
    return overrides


def load_tree(path: Path) -> list[FileTreeNode]:
    """Load a file tree from JSON.

    Accepts a list of nodes, an object with a ``tree`` list of nodes, or a
    jsDelivr listing with a ``files`` list.
    """
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        if "files" in data:
            return tree_from_listing(data["files"])
        data = data.get("tree", [])
    if not isinstance(data, list):
        raise ValueError(f"Unsupported file tree document: {path}")
    return [FileTreeNode.from_dict(node) for node in data]


def load_manifest(path: Path | None) -> dict[str, Any] | None:
    if path is None:
        return None
    data = json.loads(path.read_text())
    return data if isinstance(data, dict) else None


def split_range(version_range: str) -> tuple[str, str]:
    versions = parse_version_range(version_range)
    if versions is None:
        raise ValueError("Invalid version range format. Use from...to (e.g., 1.0.0...2.0.0)")
    return versions


def print_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


def print_hunks(hunks: list[Hunk | SkipBlock]) -> None:
    for item in hunks:
        if isinstance(item, SkipBlock):
            console.print(f"  [dim]… {item.message}[/dim]")
            continue
        console.print(f"  [cyan]{escape(item.header)}[/cyan]", highlight=False)
        for line in item.lines:
            if line.kind == SegmentKind.INSERT:
                console.print(f"  [green]+{escape(line.new_text)}[/green]", highlight=False)
            elif line.kind == SegmentKind.DELETE:
                console.print(f"  [red]-{escape(line.old_text)}[/red]", highlight=False)
            elif any(s.kind != SegmentKind.NORMAL for s in line.segments):
                console.print(f"  [yellow]~{escape(line.new_text)}[/yellow]", highlight=False)
            else:
                console.print(f"   {escape(line.new_text)}", highlight=False)


def print_file_diff(result: FileDiffResult) -> None:
    console.print(f"[bold]{escape(result.path)}[/bold] ({result.kind})")
    console.print(f"  +{result.stats.additions} / -{result.stats.deletions}")
    print_hunks(result.hunks)


def print_compare_result(result: CompareResult) -> None:
    console.print(
        f"[bold]{result.package}[/bold] {result.from_version} → {result.to_version}"
    )
    stats = result.stats
    console.print(f"  Files: {stats.total_files_from} → {stats.total_files_to}")
    console.print(f"  Added: {stats.files_added}")
    console.print(f"  Removed: {stats.files_removed}")
    console.print(f"  Modified: {stats.files_modified}")

    for change in result.files.added:
        console.print(f"    [green]+ {escape(change.path)}[/green]")
    for change in result.files.removed:
        console.print(f"    [red]- {escape(change.path)}[/red]")
    for change in result.files.modified:
        console.print(f"    [yellow]~ {escape(change.path)}[/yellow]")

    if result.dependency_changes:
        console.print("  Dependencies:")
        for dep in result.dependency_changes:
            bucket = f" ({dep.semver_bucket})" if dep.semver_bucket else ""
            console.print(
                f"    {dep.section}: {dep.name} {dep.from_version or '∅'} → "
                f"{dep.to_version or '∅'} [{dep.kind}]{bucket}",
                markup=False,
            )

    for warning in result.warnings:
        console.print(f"  [yellow]Warning: {warning}[/yellow]")


@click.group()
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Compare package versions and render structured diffs."""
    # Load .env file for local development
    load_dotenv()
    setup_logging(verbose)

    with cli_errors():
        ctx.obj = load_config(Path(config_path) if config_path else None)


diff_options = [
    click.option("--no-merge", is_flag=True, help="Keep changed lines as separate -/+ lines"),
    click.option("--max-change-ratio", type=float, default=None, help="Merge threshold"),
    click.option("--json", "as_json", is_flag=True, help="Print JSON output"),
]


def with_diff_options(func: Callable[..., Any]) -> Callable[..., Any]:
    for option in reversed(diff_options):
        func = option(func)
    return func


@cli.command("parse")
@click.argument("diff_file", type=click.Path(path_type=Path))
@with_diff_options
@click.pass_obj
def parse_command(
    config: Config,
    diff_file: Path,
    no_merge: bool,
    max_change_ratio: float | None,
    as_json: bool,
) -> None:
    """Parse a unified diff file."""
    with cli_errors():
        text = diff_file.read_text()
        options = config.diff.merged(diff_overrides(no_merge, max_change_ratio))
        files = parse_unified_diff(text, options)

        results = [
            FileDiff(
                f.old_path,
                f.new_path,
                f.kind,
                insert_skip_blocks(h for h in f.hunks if isinstance(h, Hunk)),
            )
            for f in files
        ]

        if as_json:
            print_json([file_diff.to_dict() for file_diff in results])
            return

        if not results:
            console.print("No changes")
            return
        for file_diff in results:
            stats = count_diff_stats(file_diff.hunks)
            console.print(f"[bold]{escape(file_diff.new_path)}[/bold] ({file_diff.kind})")
            console.print(f"  +{stats.additions} / -{stats.deletions}")
            print_hunks(file_diff.hunks)


@cli.command("diff")
@click.argument("old_file", type=click.Path(path_type=Path))
@click.argument("new_file", type=click.Path(path_type=Path))
@click.option("--path", "display_path", default=None, help="Path to show in the diff header")
@with_diff_options
@click.pass_obj
def diff_command(
    config: Config,
    old_file: Path,
    new_file: Path,
    display_path: str | None,
    no_merge: bool,
    max_change_ratio: float | None,
    as_json: bool,
) -> None:
    """Diff two local files. A missing file counts as an add or delete."""
    with cli_errors():
        old_content = old_file.read_text() if old_file.exists() else None
        new_content = new_file.read_text() if new_file.exists() else None

        differ = FileDiffer(config.diff)
        result = differ.compute_file_diff(
            package="",
            from_version=str(old_file),
            to_version=str(new_file),
            file_path=display_path or new_file.name,
            old_content=old_content,
            new_content=new_content,
            options=diff_overrides(no_merge, max_change_ratio),
        )

        if as_json:
            print_json(result.to_dict())
        elif not result.hunks:
            console.print("No changes")
        else:
            print_file_diff(result)


@cli.command("files")
@click.argument("from_tree", type=click.Path(path_type=Path))
@click.argument("to_tree", type=click.Path(path_type=Path))
@click.option("--from-manifest", type=click.Path(path_type=Path), default=None)
@click.option("--to-manifest", type=click.Path(path_type=Path), default=None)
@click.option("--max-files", type=int, default=None, help="Cap on reported file changes")
@click.option("--json", "as_json", is_flag=True, help="Print JSON output")
@click.pass_obj
def files_command(
    config: Config,
    from_tree: Path,
    to_tree: Path,
    from_manifest: Path | None,
    to_manifest: Path | None,
    max_files: int | None,
    as_json: bool,
) -> None:
    """Compare two local file-tree snapshots (and optional manifests)."""
    with cli_errors():
        result = build_compare_result(
            "",
            str(from_tree),
            str(to_tree),
            load_tree(from_tree),
            load_tree(to_tree),
            load_manifest(from_manifest),
            load_manifest(to_manifest),
            max_files=max_files if max_files is not None else config.compare.max_files,
        )

        if as_json:
            print_json(result.to_dict())
        else:
            print_compare_result(result)


@cli.command("compare")
@click.argument("package")
@click.argument("version_range")
@click.option("--json", "as_json", is_flag=True, help="Print JSON output")
@click.pass_obj
def compare_command(config: Config, package: str, version_range: str, as_json: bool) -> None:
    """Compare two published versions of a package (FROM...TO)."""
    with cli_errors():
        from_version, to_version = split_range(version_range)

        async def run() -> CompareResult:
            async with RegistryFetcher(config.fetcher) as fetcher:
                return await fetcher.compare_packages(
                    package, from_version, to_version, max_files=config.compare.max_files
                )

        result = asyncio.run(run())

        if as_json:
            print_json(result.to_dict())
        else:
            print_compare_result(result)


@cli.command("compare-file")
@click.argument("package")
@click.argument("version_range")
@click.argument("path")
@with_diff_options
@click.pass_obj
def compare_file_command(
    config: Config,
    package: str,
    version_range: str,
    path: str,
    no_merge: bool,
    max_change_ratio: float | None,
    as_json: bool,
) -> None:
    """Diff one file between two published versions of a package."""
    with cli_errors():
        from_version, to_version = split_range(version_range)
        options = config.diff.merged(diff_overrides(no_merge, max_change_ratio))

        async def run() -> FileDiffResult:
            async with RegistryFetcher(config.fetcher) as fetcher:
                return await fetcher.compare_file(
                    package, from_version, to_version, path, options
                )

        result = asyncio.run(run())

        if as_json:
            print_json(result.to_dict())
        elif not result.hunks:
            console.print("No changes")
        else:
            print_file_diff(result)


if __name__ == "__main__":
    cli()
