# cli.py
from __future__ import annotations

import sys
from pathlib import Path

import click

from . import __version__
from .discovery import TOOL_TYPES, discover_tools, is_git_repository
from .patterns import classify as classify_command
from .report import write_reports
from .runner import analyze_tools
from .settings import Settings
from .ui.console import Console


def _repository(path: str, console: Console) -> Path:
    root = Path(path).resolve()
    if not root.is_dir():
        console.print_error(
            "Repository not found",
            f"Directory does not exist: {root}",
            suggestion="Pass the repository root:\n  pipeline-analyzer analyze /path/to/repo",
        )
        sys.exit(1)
    return root


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option("--log-file", default=None, type=click.Path(dir_okay=False), help="Also append every message to this file")
@click.version_option(__version__, prog_name="pipeline-analyzer")
@click.pass_context
def cli(ctx, debug, log_file):
    """pipeline-analyzer: map CI/CD and build configs before migrating them."""
    console = ctx.with_resource(Console(debug=debug, log_file=log_file))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["log_file"] = log_file
    ctx.obj["console"] = console


@cli.command()
@click.argument("path", default=".", type=click.Path(file_okay=False))
@click.option("--output-dir", default=None, help="Where reports go (default .discovery/pipeline-analyzer under PATH)")
@click.option("--no-write", is_flag=True, default=False, help="Analyze only, do not write Markdown reports")
@click.option("--tool", "tools", multiple=True, type=click.Choice(sorted(TOOL_TYPES)), help="Only analyze this tool type (repeatable)")
@click.pass_context
def analyze(ctx, path, output_dir, no_write, tools):
    """Discover and analyze every pipeline config under PATH."""
    console: Console = ctx.obj["console"]
    root = _repository(path, console)

    settings = Settings.load(
        root,
        {
            "output_dir": output_dir,
            "write_reports": False if no_write else None,
            "tools": list(tools) or None,
        },
        console=console,
    )
    console.print_debug(f"settings: {settings.to_dict()}")

    try:
        discovered = discover_tools(root, settings.exclude_dirs, only=settings.tools or None, console=console)
        if not discovered:
            console.print_warning(f"No supported pipeline configs found in {root}")
            console.print_info("Searched for: CircleCI, GitHub Actions, Go Task, Dockerfile, Docker Compose")
            return

        report = analyze_tools(root, discovered, console)

        if settings.write_reports:
            output = settings.output_path(root)
            write_reports(report, output, console)
            console.print_info(f"\nReports: {output / 'README.md'}")

        console.print_results(report.summary_rows())
        if report.failed:
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except OSError as e:
        console.print_error("Analysis failed", str(e))
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@click.argument("path", default=".", type=click.Path(file_okay=False))
@click.pass_context
def scan(ctx, path):
    """List the pipeline configs found under PATH."""
    console: Console = ctx.obj["console"]
    root = _repository(path, console)
    settings = Settings.load(root, console=console)

    tools = discover_tools(root, settings.exclude_dirs, only=settings.tools or None, console=console)
    console.print_header(f"{len(tools)} config(s) in {root}")
    if not is_git_repository(root):
        console.print_warning(f"{root} is not a git repository")
    for tool in tools:
        console.print_tool_discovered(tool.display_name, tool.config_path)


@cli.command()
@click.argument("command")
@click.pass_context
def classify(ctx, command):
    """Classify one shell COMMAND."""
    console: Console = ctx.obj["console"]
    c = classify_command(command)
    console.print_info(f"Pattern:    {c.pattern or '-'}")
    console.print_info(f"Category:   {c.category}")
    console.print_info(f"Tools:      {', '.join(c.tools)}")
    console.print_info(f"Complexity: {c.complexity}")
    console.print_info(f"Risk:       {c.risk_level}")
    for suggestion in c.suggestions:
        console.print_info(f"  - {suggestion}")


if __name__ == "__main__":
    cli()
