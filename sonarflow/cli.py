"""CLI entry point: command definitions using Click.

Commands:
    init          Generate a template config file
    fetch         Fetch Sonar issues for the current branch / its PR into issues.json
    scan          Run the Sonar scanner locally and dump its report
    quality-gate  Show the quality gate status of the configured project
"""

import functools
import logging
import sys

import click

from sonarflow import __version__
from sonarflow.config import DEFAULT_CONFIG_PATH


# ---------------------------------------------------------------------------
# Helpers shared by all commands
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s" if not verbose else "[%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # Keep urllib3 quiet unless explicitly debugging
    logging.getLogger("urllib3").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_config(ctx: click.Context):
    """Load the config file. Exits on error."""
    from sonarflow.config import load
    from sonarflow.errors import ConfigurationError

    try:
        return load(ctx.obj["config_path"])
    except ConfigurationError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)


def _output_dir(ctx: click.Context, config) -> str:
    return ctx.obj["output_dir"] or config.output_path


def _handle_errors(func):
    """Decorator that catches sonarflow exceptions and exits cleanly."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from sonarflow.errors import (
            AuthenticationError,
            ConfigurationError,
            GitError,
            HttpError,
            NetworkError,
            NotFoundError,
            SonarflowError,
            UnexpectedContentType,
        )

        try:
            return func(*args, **kwargs)
        except ConfigurationError as exc:
            click.echo(f"Configuration error: {exc}", err=True)
        except GitError as exc:
            click.echo(f"Git error: {exc}", err=True)
        except AuthenticationError as exc:
            click.echo(f"Authentication error: {exc}", err=True)
        except NotFoundError as exc:
            click.echo(f"Not found: {exc}", err=True)
        except UnexpectedContentType as exc:
            click.echo(f"Unexpected response: {exc}", err=True)
        except NetworkError as exc:
            click.echo(f"Network error: {exc}", err=True)
        except HttpError as exc:
            click.echo(f"Sonar error: {exc}", err=True)
        except SonarflowError as exc:
            click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default=DEFAULT_CONFIG_PATH, show_default=True,
              help="Path to the configuration file.")
@click.option("--output", "output_dir", default=None,
              help="Directory for generated files (overrides 'output_path' in config).")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="sonarflow")
@click.pass_context
def cli(ctx: click.Context, config_path: str, output_dir: str | None, verbose: bool) -> None:
    """Fetch SonarQube / SonarCloud issues for the current branch or its pull request."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_dir"] = output_dir


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default=DEFAULT_CONFIG_PATH, show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template .sonarflow.yaml file."""
    from sonarflow.config import generate_template
    from sonarflow.errors import ConfigurationError

    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your provider, repository and Sonar settings.")
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------

@cli.command("fetch")
@click.option("--branch", default=None,
              help="Branch to query. Defaults to the current git branch.")
@click.option("--pr-link", default=None,
              help="SonarQube PR link (.../project/issues?id=...&pullRequest=KEY).")
@click.pass_context
@_handle_errors
def fetch_command(ctx: click.Context, branch: str | None, pr_link: str | None) -> None:
    """Fetch issues and save them to <output>/issues.json."""
    from sonarflow import git
    from sonarflow.client import SonarClient
    from sonarflow.fetcher import fetch_issues
    from sonarflow.reports.issues import summarize_severities, write_report

    config = _load_config(ctx)
    branch = branch or git.current_branch()
    click.echo(f"Current branch: {branch}", err=True)

    client = SonarClient(token=config.sonar.auth_token)
    outcome = fetch_issues(client, config, branch, pr_link=pr_link)
    path = write_report(outcome, _output_dir(ctx, config))

    click.echo(
        f"Fetched {len(outcome.issues)} issues (source: {outcome.source_description})"
    )
    click.echo(f"Saved to: {path}")

    if outcome.issues:
        click.echo("\nIssues by severity:")
        for severity, count in summarize_severities(outcome.issues).items():
            click.echo(f"  {severity}: {count}")


# ---------------------------------------------------------------------------
# scan
# ---------------------------------------------------------------------------

@cli.command("scan")
@click.pass_context
@_handle_errors
def scan_command(ctx: click.Context) -> None:
    """Run the Sonar scanner locally and save its report."""
    from sonarflow.scanner import run_scan

    config = _load_config(ctx)
    click.echo("Starting Sonar scan...", err=True)
    report = run_scan(config.sonar, _output_dir(ctx, config))
    click.echo(f"Scan completed. Results saved to: {report}")


# ---------------------------------------------------------------------------
# quality-gate
# ---------------------------------------------------------------------------

@cli.command("quality-gate")
@click.option("--branch", default=None,
              help="Branch to check. Defaults to the project's main branch.")
@click.option("--pr-link", default=None,
              help="SonarQube PR link (.../project/issues?id=...&pullRequest=KEY).")
@click.pass_context
@_handle_errors
def quality_gate_command(ctx: click.Context, branch: str | None, pr_link: str | None) -> None:
    """Show the quality gate status. Exits 1 when the gate fails."""
    from sonarflow.client import SonarClient
    from sonarflow.models import Branch, PullRequestKey
    from sonarflow.reports.quality_gate import (
        failed_conditions,
        fetch_quality_gate,
        format_condition,
    )
    from sonarflow.url_builder import extract_pull_request_key

    config = _load_config(ctx)
    target = None
    if pr_link:
        target = PullRequestKey(extract_pull_request_key(pr_link))
    elif branch:
        target = Branch(branch)

    client = SonarClient(token=config.sonar.auth_token)
    status = fetch_quality_gate(client, config.sonar, target)

    click.echo(f"Quality gate: {status.get('status', 'NONE')}")
    for condition in failed_conditions(status):
        click.echo(f"  {format_condition(condition)}")

    if status.get("status") == "ERROR":
        sys.exit(1)
