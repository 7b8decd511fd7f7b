import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Type

import click
from rich.console import Console
from rich.panel import Panel

from .badges import BadgeData
from .cli_config import (
    ComprehensiveConfig,
    apply_config_section,
    create_sample_config,
    get_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .dispatch import SERVICES, handle_request, invoke
from .error_handling import setup_error_handling
from .github_client import GitHubContentFetcher, LocalFileFetcher, RepoFileFetcher
from .reporting import BadgeReporter
from .services import DependencyVersionBadge, PythonVersionBadge
from .structured_logging import configure_logging

__version__ = "1.0.0"

console = Console()


def _setup_runtime() -> ComprehensiveConfig:
    """Load configuration and wire logging and error handling from it."""
    config = load_config()
    configure_logging(config.logging.log_level, config.logging.enable_json)
    setup_error_handling(
        log_level=getattr(logging, config.logging.log_level.upper(), logging.WARNING),
        mask_sensitive=config.logging.enable_sensitive_data_masking,
    )
    return config


def _validate_param(name: str, value: Optional[str], max_length: int) -> None:
    if value is None:
        return
    if not value.strip():
        raise click.BadParameter(f"{name} must not be empty")
    if len(value) > max_length:
        raise click.BadParameter(f"{name} too long (max: {max_length} characters)")


async def _with_fetcher(lockfile: Optional[str], run) -> BadgeData:
    """Run a coroutine factory against a local or GitHub fetcher."""
    if lockfile:
        fetcher: RepoFileFetcher = LocalFileFetcher(lockfile)
        return await run(fetcher)
    async with GitHubContentFetcher() as fetcher:
        return await run(fetcher)


def output_badge(
    badge: BadgeData,
    output_format: str,
    output_file: Optional[str] = None,
    quiet: bool = False,
    title: Optional[str] = None,
) -> None:
    """Print or save a badge."""
    if output_format == "json":
        json_output = json.dumps(badge.to_endpoint_json(), indent=2)
        if output_file:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(json_output + "\n")
            if not quiet:
                console.print(f"✅ Badge saved to {output_file}", style="green")
        else:
            print(json_output)
    elif not quiet or badge.is_error:
        BadgeReporter(console).print_badge(badge, title=title)


def run_badge(
    output_format: Optional[str],
    output_file: Optional[str],
    quiet: bool,
    lockfile: Optional[str],
    title: str,
    run,
) -> None:
    """Shared body of the badge commands: render, print, set the exit code."""
    try:
        config = _setup_runtime()
        final_format = output_format or config.output.output_format
        final_quiet = quiet or config.output.quiet

        if output_file and final_format != "json":
            raise click.ClickException("Output file can only be used with JSON format")

        badge = asyncio.run(_with_fetcher(lockfile, run))
        output_badge(badge, final_format, output_file, final_quiet, title=title)

    except KeyboardInterrupt:
        Console(stderr=True).print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)
    except click.ClickException:
        raise
    except Exception as e:
        Console(stderr=True).print(f"❌ Error: {str(e)}", style="red")
        sys.exit(1)

    sys.exit(1 if badge.is_error else 0)


def output_options(func):
    """Options shared by every badge command."""
    func = click.option(
        "--lockfile",
        type=click.Path(exists=True, readable=True, dir_okay=False),
        help="Read this local Pipfile.lock instead of fetching it from GitHub",
    )(func)
    func = click.option(
        "--quiet", "-q", is_flag=True, help="Only print error badges"
    )(func)
    func = click.option(
        "--output-file",
        "-o",
        type=click.Path(),
        help="Save the badge to a file (JSON format only)",
    )(func)
    func = click.option(
        "--output-format",
        type=click.Choice(["console", "json"], case_sensitive=False),
        help="Output format (default from config or console)",
    )(func)
    return func


def _service_runner(service: Type[Any], **params: Optional[str]):
    async def run(fetcher: RepoFileFetcher) -> BadgeData:
        return await invoke(service, fetcher, **params)

    return run


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    📛 pipenv-badges: badges for Pipenv-managed projects on GitHub

    Reads Pipfile.lock from a GitHub repository and renders the locked
    Python version or the locked version of a dependency.
    """
    if version:
        console.print(f"pipenv-badges version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command("python-version")
@click.argument("user")
@click.argument("repo")
@click.argument("branch", required=False)
@output_options
def python_version(
    user: str,
    repo: str,
    branch: Optional[str],
    output_format: Optional[str],
    output_file: Optional[str],
    quiet: bool,
    lockfile: Optional[str],
) -> None:
    """
    Python version locked in a repository's Pipfile.lock.

    Examples:

      pipenv-badges python-version metabolize rq-dashboard-on-heroku

      pipenv-badges python-version metabolize rq-dashboard-on-heroku master --output-format json
    """
    max_length = get_config().security.max_param_length
    for name, value in (("user", user), ("repo", repo), ("branch", branch)):
        _validate_param(name, value, max_length)

    run_badge(
        output_format,
        output_file,
        quiet,
        lockfile,
        f"{user}/{repo}",
        _service_runner(PythonVersionBadge, user=user, repo=repo, branch=branch),
    )


@cli.command("dependency-version")
@click.argument("user")
@click.argument("repo")
@click.argument("package_name", metavar="PACKAGE")
@click.argument("branch", required=False)
@click.option("--dev", is_flag=True, help="Look in [dev-packages] instead of [packages]")
@output_options
def dependency_version(
    user: str,
    repo: str,
    package_name: str,
    branch: Optional[str],
    dev: bool,
    output_format: Optional[str],
    output_file: Optional[str],
    quiet: bool,
    lockfile: Optional[str],
) -> None:
    """
    Locked version of a dependency in a repository's Pipfile.lock.

    Examples:

      pipenv-badges dependency-version metabolize rq-dashboard-on-heroku flask

      pipenv-badges dependency-version metabolize rq-dashboard-on-heroku black master --dev
    """
    max_length = get_config().security.max_param_length
    for name, value in (
        ("user", user),
        ("repo", repo),
        ("package", package_name),
        ("branch", branch),
    ):
        _validate_param(name, value, max_length)

    run_badge(
        output_format,
        output_file,
        quiet,
        lockfile,
        f"{user}/{repo}",
        _service_runner(
            DependencyVersionBadge,
            user=user,
            repo=repo,
            package_name=package_name,
            kind="dev" if dev else None,
            branch=branch,
        ),
    )


@cli.command()
@click.argument("path")
@output_options
def badge(
    path: str,
    output_format: Optional[str],
    output_file: Optional[str],
    quiet: bool,
    lockfile: Optional[str],
) -> None:
    """
    Render the badge for a full route path.

    Examples:

      pipenv-badges badge github/pipenv/locked/python-version/metabolize/rq-dashboard-on-heroku

      pipenv-badges badge github/pipenv/locked/dependency-version/metabolize/rq-dashboard-on-heroku/dev/black.json
    """

    async def run(fetcher: RepoFileFetcher) -> BadgeData:
        return await handle_request(path, fetcher)

    run_badge(output_format, output_file, quiet, lockfile, path, run)


@cli.command()
def examples():
    """Show documented examples with their static previews (no network access)."""
    BadgeReporter(console).print_examples(SERVICES)


@cli.command()
def info():
    """Show routes, configuration files and environment variables."""
    routes = "\n".join(
        f"• [green]{service.route.base}/{service.route.pattern}[/green]"
        for service in SERVICES
    )
    info_text = f"""
[bold blue]🛣️  Routes:[/bold blue]

{routes}

[bold blue]🔐 GitHub Access:[/bold blue]

• With a token, Pipfile.lock is read through the GitHub contents API
• Without one, it is downloaded anonymously from raw.githubusercontent.com

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]GITHUB_TOKEN[/cyan] / [cyan]PIPENV_BADGES_GITHUB_TOKEN[/cyan] - GitHub token
• [cyan]PIPENV_BADGES_GITHUB_API_URL[/cyan] - GitHub API base URL
• [cyan]PIPENV_BADGES_GITHUB_RAW_URL[/cyan] - Raw content base URL
• [cyan]PIPENV_BADGES_OUTPUT_FORMAT[/cyan] - console or json
• [cyan]PIPENV_BADGES_LOG_LEVEL[/cyan] - Logging level

[bold blue]📄 Configuration Files:[/bold blue]

• [green].pipenv-badges.json[/green] - Project-level config
• [green]~/.config/pipenv-badges/config.json[/green] - User-level config
• [green]~/.pipenv-badges.json[/green] - User home config

[bold blue]💡 Usage Examples:[/bold blue]

  pipenv-badges python-version metabolize rq-dashboard-on-heroku
  pipenv-badges dependency-version metabolize rq-dashboard-on-heroku flask
  pipenv-badges dependency-version metabolize rq-dashboard-on-heroku black --dev
  pipenv-badges python-version me my-app --lockfile Pipfile.lock
  pipenv-badges config init
"""
    console.print(
        Panel(
            info_text,
            title="[bold]pipenv-badges Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".pipenv-badges.json",
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

        console.print(f"✅ Created configuration file at {config_path}", style="green")
        console.print("Edit this file to customize your settings", style="dim")

    except OSError as e:
        console.print(f"❌ Failed to create config file: {e}", style="red")
        sys.exit(1)


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]🐙 GitHub Settings:[/bold cyan]")
    console.print(f"  API URL: {current_config.github.api_url}")
    console.print(f"  Raw URL: {current_config.github.raw_url}")
    console.print(
        f"  Token: {'configured' if current_config.github.has_token else 'not set'}"
    )
    console.print(f"  User Agent: {current_config.github.user_agent}")
    console.print(f"  Connect Timeout: {current_config.github.connect_timeout}s")
    console.print(f"  Read Timeout: {current_config.github.read_timeout}s")
    console.print(f"  Default Branch: {current_config.github.default_branch}")

    console.print("\n[bold cyan]🔒 Security Settings:[/bold cyan]")
    console.print(f"  Max File Size: {current_config.security.max_file_size_mb} MB")
    console.print(f"  Max Parameter Length: {current_config.security.max_param_length}")

    console.print("\n[bold cyan]📤 Output Settings:[/bold cyan]")
    console.print(f"  Output Format: {current_config.output.output_format}")
    console.print(f"  Quiet: {current_config.output.quiet}")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")
    console.print(f"  JSON Logs: {current_config.logging.enable_json}")
    console.print(
        f"  Sensitive Data Masking: {current_config.logging.enable_sensitive_data_masking}"
    )


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if not isinstance(config_data, dict):
        console.print(f"❌ Could not load config from {config_file}", style="red")
        sys.exit(1)

    candidate = ComprehensiveConfig()
    for section_name in ("github", "security", "output", "logging"):
        section = config_data.get(section_name)
        if isinstance(section, dict):
            apply_config_section(getattr(candidate, section_name), section, section_name)

    try:
        errors = validate_config_values(candidate)
    except (TypeError, AttributeError) as e:
        errors = [f"invalid value type: {e}"]
    if errors:
        console.print("❌ Configuration validation failed:", style="red")
        for error in errors:
            console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
