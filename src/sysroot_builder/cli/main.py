"""
Sysroot Builder CLI — Build cross-compilation sysroots from APT repositories.

Usage:
    sysroot-builder build --path ./sysroot --distribution noble --packages libc6-dev,libssl-dev \\
        --sources "https://archive.ubuntu.com/ubuntu/|main,universe"
    sysroot-builder build --config-file ./config.json
    sysroot-builder resolve --config-file ./config.json --output packages.json
    sysroot-builder clean --cache-path ./sysroot/tmp
"""

import asyncio
import functools
import json
import logging

import click
from click.core import ParameterSource

from sysroot_builder.errors import ConfigurationError, SysrootError

logger = logging.getLogger(__name__)

# Options that may be combined with --config-file.
_FILE_COMPATIBLE_OPTIONS = {"config_file", "verbose", "output"}


def config_options(command):
    """Attach the options describing a sysroot build to ``command``."""
    options = [
        click.option("--config-file", type=click.Path(dir_okay=False), default=None,
                     help="Path to a JSON configuration file (no other build options allowed)."),
        click.option("--path", default=None, help="The target directory for the sysroot."),
        click.option("--arch", default=None, help="The target architecture (e.g. amd64, armhf). Default: amd64."),
        click.option("--distribution", default=None, help="The distribution name (e.g. bookworm, noble)."),
        click.option("--cache-path", default=None,
                     help="Path for downloaded packages and metadata. Default: <path>/tmp."),
        click.option("--packages", default=None, help="Comma-separated list of packages to install."),
        click.option("--sources", default=None,
                     help="Space-separated list of sources in format 'uri|component1,component2'."),
        click.option("--banned-packages", default=None,
                     help="Comma-separated list of package name prefixes to exclude."),
        click.option("--no-default-banned-packages", is_flag=True,
                     help="Do not add the default banned packages (kernel images, firmware)."),
        click.option("--no-dependencies", is_flag=True, help="Do not resolve and install dependencies."),
        click.option("--http-timeout", type=int, default=None, help="Timeout for HTTP requests in seconds. Default: 100."),
        click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging."),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def build_options(command):
    """Options only meaningful when the sysroot is actually written."""
    options = [
        click.option("--purge", is_flag=True, help="Purge existing sysroot."),
        click.option("--purge-cache", is_flag=True, help="Purge existing caches."),
        click.option("--no-usr-merge", is_flag=True,
                     help="Do not merge bin, sbin, lib and include into usr."),
        click.option("--no-bins", is_flag=True, help="Remove binary directories."),
        click.option("--store-install-state", is_flag=True,
                     help="Record the installed packages in <path>/.sysroot-state.json."),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def configure_logging(verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_config(ctx: click.Context, options: dict):
    """Build and validate a SysrootConfig from command options or a config file."""
    from sysroot_builder.core.config import SysrootConfig, parse_sources, split_list

    if options.get("config_file"):
        explicit = [
            name
            for name in options
            if name not in _FILE_COMPATIBLE_OPTIONS
            and ctx.get_parameter_source(name) is not ParameterSource.DEFAULT
        ]
        if explicit:
            flags = ", ".join("--" + name.replace("_", "-") for name in sorted(explicit))
            raise ConfigurationError(f"--config-file cannot be combined with: {flags}")
        return SysrootConfig.from_file(options["config_file"]).validate()

    http_timeout = options.get("http_timeout")
    config = SysrootConfig(
        path=options.get("path"),
        arch=options.get("arch"),
        distribution=options.get("distribution"),
        cache_path=options.get("cache_path"),
        packages=split_list(options.get("packages")),
        banned_packages=split_list(options.get("banned_packages")),
        no_default_banned_packages=options.get("no_default_banned_packages", False),
        sources=parse_sources(options.get("sources")),
        no_dependencies=options.get("no_dependencies", False),
        http_timeout=100 if http_timeout is None else http_timeout,
        purge=options.get("purge", False),
        purge_cache=options.get("purge_cache", False),
        no_usr_merge=options.get("no_usr_merge", False),
        no_bins=options.get("no_bins", False),
        store_install_state=options.get("store_install_state", False),
    )
    return config.validate()


def handle_errors(func):
    """Log any failure of a command and exit with status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SysrootError as e:
            logger.error(f"Error: {e}")
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1) from e
        except Exception as e:
            logger.exception(f"Error: {type(e).__name__}: {e}")
            click.echo(f"Error: {type(e).__name__}: {e}", err=True)
            raise SystemExit(1) from e

    return wrapper


@click.group()
@click.version_option(package_name="sysroot-builder")
def cli():
    """Sysroot Builder — Build cross-compilation sysroots from APT repositories."""
    pass


@cli.command()
@config_options
@build_options
@click.pass_context
@handle_errors
def build(ctx, **options):
    """Resolve, download and unpack packages into a sysroot."""
    from sysroot_builder.core.builder import SysrootBuilder

    configure_logging(options["verbose"])
    config = load_config(ctx, options)

    builder = SysrootBuilder(config)
    asyncio.run(builder.run())


@cli.command()
@config_options
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Write the resolved package list as JSON to this file.")
@click.pass_context
@handle_errors
def resolve(ctx, **options):
    """Resolve the package request and print the install order."""
    from rich.console import Console
    from rich.table import Table

    from sysroot_builder.core.builder import SysrootBuilder

    configure_logging(options["verbose"])
    config = load_config(ctx, options)

    console = Console()
    packages = asyncio.run(SysrootBuilder(config, console=console).resolve_only())

    table = Table(title=f"{len(packages)} packages for {config.distribution}/{config.arch}")
    table.add_column("#", justify="right")
    table.add_column("Package")
    table.add_column("Architecture")
    table.add_column("Version")
    for number, package in enumerate(packages, start=1):
        table.add_row(str(number), package.name, package.architecture, str(package.version))
    console.print(table)

    if options.get("output"):
        with open(options["output"], "w") as f:
            json.dump([p.to_dict() for p in packages], f, indent=2)
        console.print(f"[cyan]Package list written to {options['output']}[/cyan]")


@cli.command()
@click.option(
    "--cache-path",
    "-c",
    type=click.Path(file_okay=False),
    required=True,
    help="Cache directory to remove.",
)
def clean(cache_path):
    """Remove downloaded indexes and packages."""
    from pathlib import Path

    from sysroot_builder.core.layout import purge

    logging.basicConfig(level=logging.INFO)
    purge(Path(cache_path))


if __name__ == "__main__":
    cli()
