"""Command line entry point: one command per workflow."""

import asyncio
import sys
from functools import wraps
from pathlib import Path

import click
from github import GithubException
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ..core.config import DEFAULT_CONFIG_PATH, load_config
from ..errors import WorkflowError
from ..utils.detached import flush_detached
from ..utils.rich_logging import setup_logging
from ..workflows import (
    BugInvestigationWorkflow,
    ImplementationWorkflow,
    PRReviewWorkflow,
    ProductDesignWorkflow,
    ProductDevelopmentWorkflow,
    RunOptions,
    TechDesignWorkflow,
    TriageWorkflow,
    WorkflowContext,
    WorkflowReviewWorkflow,
    complete_phase,
    run_batch,
)

console = Console()


@click.group()
@click.option("--workspace", "-w", default=".", help="Workspace directory (the target repository)")
@click.option("--config", "-c", "config_path", default=None, help="Config file (default: <workspace>/agent-workflow.yaml)")
@click.option("--log-level", default="INFO", help="Log level")
@click.pass_context
def cli(ctx, workspace, config_path, log_level):
    """Agent Workflow - drive GitHub issues from idea to merged PR with AI agents."""
    ctx.ensure_object(dict)
    workspace = Path(workspace)
    ctx.obj["workspace"] = workspace
    ctx.obj["config_path"] = Path(config_path) if config_path else workspace / DEFAULT_CONFIG_PATH
    ctx.obj["log_level"] = log_level


def workflow_options(func):
    """Options shared by every workflow command."""
    @click.option("--id", "item_id", default=None, help="Process a single item by board item ID")
    @click.option("--dry-run", is_flag=True, help="Run the agent but save nothing")
    @click.option("--stream", is_flag=True, help="Stream agent output")
    @click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
    @click.option("--limit", "-n", type=int, default=None, help="Max items to process")
    @click.option("--timeout", type=int, default=None, help="Agent timeout in seconds")
    @wraps(func)
    def wrapper(*args, **kwargs):
        return func(*args, **kwargs)
    return wrapper


def _load_context(ctx, options: RunOptions) -> WorkflowContext:
    setup_logging(ctx.obj["log_level"], verbose=options.verbose)
    config = load_config(ctx.obj["config_path"], workspace=ctx.obj["workspace"])
    context = WorkflowContext.from_config(config, options)
    context.project.init()
    return context


async def _run_batch(runner):
    try:
        return await run_batch(runner)
    finally:
        await runner.ctx.agents.dispose_all()


def _run_workflow(ctx, runner_class, options: RunOptions) -> None:
    """Run one batch. Item failures are reported, fatal errors exit 1."""
    try:
        context = _load_context(ctx, options)
        asyncio.run(_run_batch(runner_class(context)))
    except (WorkflowError, ValidationError, GithubException) as e:
        console.print(f"[red]Error: {e}[/]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/]")
        sys.exit(130)
    finally:
        flush_detached()


def _options(item_id, dry_run, stream, verbose, limit, timeout, **extra) -> RunOptions:
    return RunOptions(
        item_id=item_id, dry_run=dry_run, stream=stream, verbose=verbose, limit=limit, timeout=timeout, **extra,
    )


@cli.command("product-dev")
@workflow_options
@click.pass_context
def product_dev(ctx, **kwargs):
    """Write Product Development Documents for new feature requests."""
    _run_workflow(ctx, ProductDevelopmentWorkflow, _options(**kwargs))


@cli.command("product-design")
@workflow_options
@click.pass_context
def product_design(ctx, **kwargs):
    """Write or revise product designs."""
    _run_workflow(ctx, ProductDesignWorkflow, _options(**kwargs))


@cli.command("tech-design")
@workflow_options
@click.pass_context
def tech_design(ctx, **kwargs):
    """Write or revise technical designs and implementation phases."""
    _run_workflow(ctx, TechDesignWorkflow, _options(**kwargs))


@cli.command("implement")
@workflow_options
@click.option("--skip-push", is_flag=True, help="Commit locally without pushing or opening a PR")
@click.option("--skip-pull", is_flag=True, help="Do not fetch or merge the default branch first")
@click.option("--skip-local-test", is_flag=True, help="Skip the configured local test command")
@click.pass_context
def implement(ctx, **kwargs):
    """Implement issues (or their current phase) and open PRs."""
    _run_workflow(ctx, ImplementationWorkflow, _options(**kwargs))


@cli.command("pr-review")
@workflow_options
@click.pass_context
def pr_review(ctx, **kwargs):
    """Review open PRs waiting for review."""
    _run_workflow(ctx, PRReviewWorkflow, _options(**kwargs))


@cli.command("bug-investigate")
@workflow_options
@click.pass_context
def bug_investigate(ctx, **kwargs):
    """Investigate bug reports and propose fix options."""
    _run_workflow(ctx, BugInvestigationWorkflow, _options(**kwargs))


@cli.command("triage")
@workflow_options
@click.pass_context
def triage(ctx, **kwargs):
    """Classify backlog items that have no domain yet."""
    _run_workflow(ctx, TriageWorkflow, _options(**kwargs))


@cli.command("workflow-review")
@workflow_options
@click.pass_context
def workflow_review(ctx, **kwargs):
    """Review the execution logs of finished issues."""
    _run_workflow(ctx, WorkflowReviewWorkflow, _options(**kwargs))


@cli.command("complete-phase")
@click.option("--id", "item_id", required=True, help="Board item ID")
@click.option("--pr", "pr_number", type=int, default=None, help="Merged PR number")
@click.option("--dry-run", is_flag=True, help="Show what would change")
@click.pass_context
def complete_phase_command(ctx, item_id, pr_number, dry_run):
    """Advance an item after its PR was merged."""
    options = RunOptions(item_id=item_id, dry_run=dry_run)
    try:
        context = _load_context(ctx, options)
        item = context.project.get_item(item_id)
        if item is None:
            console.print(f"[red]Error: Item not found: {item_id}[/]")
            sys.exit(1)
        completion = complete_phase(context, item, pr_number)
    except (WorkflowError, ValidationError, GithubException) as e:
        console.print(f"[red]Error: {e}[/]")
        sys.exit(1)
    finally:
        flush_detached()

    table = Table(title=f"#{item.issue_number} {item.title}")
    table.add_column("Completed")
    table.add_column("Next")
    table.add_row(
        str(completion.completed) if completion.completed else "-",
        str(completion.next_phase) if completion.next_phase else "Done",
    )
    console.print(table)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
