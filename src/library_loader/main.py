from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel

from .artifact_fetcher import ArtifactFetcher
from .cache_manager import ArtifactCache
from .cli_config import create_sample_config, get_config
from .dependency import Dependency, RelocatedDependency, Relocation
from .error_handling import LibraryLoaderError
from .manifest import ManifestError, read_manifest
from .maven_locator import resolve_artifact_url
from .repository_client import RepositoryClient
from .structured_logging import configure_logging

__version__ = "1.0.0"

console = Console()

data_folder_option = click.option(
    "--data-folder",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Folder holding the libraries cache",
)


def parse_coordinates(coordinates: str, repo: Optional[str] = None) -> Dependency:
    """Parse ``group:artifact:version[:repo]`` for a command."""
    try:
        return Dependency.from_coordinates(
            coordinates, repo or get_config().network.default_repository
        )
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="COORDINATES")


def parse_relocations(specs: Tuple[str, ...]) -> List[Relocation]:
    """Parse ``pattern=relocated[!exclude,...]`` relocation options."""
    relocations = []
    for spec in specs:
        mapping, _, excludes = spec.partition("!")
        pattern, separator, relocated = mapping.partition("=")
        if not separator:
            raise click.BadParameter(
                f"Expected pattern=relocated, got {spec!r}", param_hint="--relocate"
            )
        try:
            relocations.append(
                Relocation(
                    pattern.strip(),
                    relocated.strip(),
                    tuple(e.strip() for e in excludes.split(",") if e.strip()),
                )
            )
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--relocate")
    return relocations


def build_cache(data_folder: str) -> ArtifactCache:
    cache_config = get_config().cache
    return ArtifactCache(
        Path(data_folder) / cache_config.libraries_dir_name, cache_config.artifact_extension
    )


def format_size(size_bytes: int) -> str:
    for unit in ("B", "KB", "MB"):
        if size_bytes < 1024:
            return f"{size_bytes:.0f} {unit}" if unit == "B" else f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} GB"


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx, version, log_level):
    """
    📦 Library Loader: runtime Maven artifact loading

    Resolves Maven coordinates, caches artifacts and prepares them for
    injection into a running interpreter.
    """
    if version:
        console.print(f"Library-Loader version {__version__}", style="bold blue")
        ctx.exit()

    configure_logging(log_level or get_config().logging.log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.argument("coordinates")
@click.option("--repo", default=None, help="Repository URL when COORDINATES has none")
def resolve(coordinates: str, repo: str):
    """Print the download URL of COORDINATES (group:artifact:version[:repo])."""
    dependency = parse_coordinates(coordinates, repo)
    try:
        with RepositoryClient() as client:
            url = resolve_artifact_url(dependency, client)
    except LibraryLoaderError as e:
        raise click.ClickException(str(e))
    console.print(url, soft_wrap=True)


@cli.command()
@click.argument("coordinates")
@click.option("--repo", default=None, help="Repository URL when COORDINATES has none")
@click.option(
    "--relocate",
    "relocate_specs",
    multiple=True,
    help="Relocation rule pattern=relocated[!exclude,...]; repeatable",
)
@data_folder_option
def fetch(coordinates: str, repo: str, relocate_specs: Tuple[str, ...], data_folder: str):
    """Download COORDINATES into the libraries cache."""
    dependency = parse_coordinates(coordinates, repo)
    relocations = parse_relocations(relocate_specs)
    if relocations:
        dependency = RelocatedDependency.of(dependency, relocations)

    artifact_cache = build_cache(data_folder)
    artifact_cache.ensure_root()
    try:
        with RepositoryClient() as client:
            path = ArtifactFetcher(artifact_cache, client).fetch(dependency)
    except LibraryLoaderError as e:
        raise click.ClickException(str(e))

    console.print(f"✅ {dependency.coordinates} → {path}", style="green", soft_wrap=True)


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, readable=True, dir_okay=False))
@data_folder_option
def prefetch(manifest: str, data_folder: str):
    """Download every library declared in MANIFEST into the cache."""
    try:
        dependencies = read_manifest(
            manifest, default_repository=get_config().network.default_repository
        )
    except ManifestError as e:
        raise click.ClickException(f"Failed to read manifest: {e}")

    if not dependencies:
        console.print("ℹ️  No libraries declared in the manifest.", style="yellow")
        return

    artifact_cache = build_cache(data_folder)
    artifact_cache.ensure_root()
    console.print(f"📦 Fetching {len(dependencies)} libraries...", style="blue")

    fetched = 0
    with RepositoryClient() as client:
        fetcher = ArtifactFetcher(artifact_cache, client)
        for dependency in dependencies:
            try:
                path = fetcher.fetch(dependency)
            except LibraryLoaderError as e:
                raise click.ClickException(
                    f"{e} ({fetched} of {len(dependencies)} libraries fetched)"
                )
            fetched += 1
            console.print(f"  ✅ {dependency.coordinates} → {path}", soft_wrap=True)

    stats = artifact_cache.stats.get_stats()
    console.print(
        f"\n📊 Prefetch complete: {fetched} libraries "
        f"({stats['hits']} cached, {stats['misses']} downloaded)",
        style="bold",
    )


@cli.group()
def cache():
    """Libraries cache management commands."""
    pass


@cache.command("list")
@data_folder_option
@click.option("--json", "as_json", is_flag=True, help="Print entries as JSON")
def cache_list(data_folder: str, as_json: bool):
    """List cached artifacts."""
    artifact_cache = build_cache(data_folder)
    artifacts = artifact_cache.list_artifacts()

    if as_json:
        console.print_json(data=[a.to_dict() for a in artifacts])
        return

    if not artifacts:
        console.print("📭 Cache is empty", style="yellow")
        return

    total = sum(a.size_bytes for a in artifacts)
    console.print(
        Panel(
            f"[bold blue]📦 Cached artifacts: {len(artifacts)} ({format_size(total)})[/bold blue]",
            border_style="blue",
        )
    )
    for artifact in artifacts:
        console.print(
            f"  [cyan]{artifact.relative_path}[/cyan]  {format_size(artifact.size_bytes)}",
            soft_wrap=True,
        )


@cache.command("path")
@click.argument("coordinates")
@data_folder_option
def cache_path(coordinates: str, data_folder: str):
    """Print the cache path of COORDINATES."""
    dependency = parse_coordinates(coordinates)
    artifact_cache = build_cache(data_folder)
    path = artifact_cache.artifact_path(dependency)
    status = "cached" if artifact_cache.contains(dependency) else "not cached"
    console.print(f"{path} ({status})", soft_wrap=True)


@cache.command("remove")
@click.argument("coordinates")
@data_folder_option
def cache_remove(coordinates: str, data_folder: str):
    """Delete the cached artifact of COORDINATES."""
    dependency = parse_coordinates(coordinates)
    if build_cache(data_folder).remove(dependency):
        console.print(f"🗑️  Removed {dependency.coordinates}", style="green")
    else:
        console.print(f"ℹ️  {dependency.coordinates} is not cached", style="yellow")


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".library-loader.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(
        Panel("[bold blue]⚙️  Library-Loader Configuration[/bold blue]", border_style="blue")
    )

    console.print("\n[bold cyan]🌐 Network Settings:[/bold cyan]")
    console.print(f"  Default Repository: {current_config.network.default_repository}")
    console.print(f"  Connect Timeout: {current_config.network.connect_timeout or 'none'}")
    console.print(f"  Read Timeout: {current_config.network.read_timeout or 'none'}")
    console.print(f"  Follow Redirects: {current_config.network.follow_redirects}")
    console.print(f"  User Agent: {current_config.network.user_agent}")

    console.print("\n[bold cyan]📦 Cache Settings:[/bold cyan]")
    console.print(f"  Libraries Folder: {current_config.cache.libraries_dir_name}")
    console.print(f"  Temp Folder: {current_config.cache.temp_dir or 'system default'}")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")


if __name__ == "__main__":
    cli()
