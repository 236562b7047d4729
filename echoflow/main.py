"""
echoflow v1.0.0: dependency-aware multi-agent workflow runner.

Commands: echoflow run | plan | config [set|reset] | agents
"""

import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import CONFIG_FIELDS, Config, ModelPreset
from .errors import OrchestrationError
from .logger import configure_logging
from .rendering import ACCENT, BORDER, DIM, ERROR, SUCCESS, WorkflowRenderer
from .workflow import (
    EchoInvoker,
    ExecutionMode,
    OrchestrationEngine,
    decompose_request,
    parse_task_plan,
)

console = Console()
BANNER = (
    f"[bold {ACCENT}]echoflow[/bold {ACCENT}] "
    f"[dim]v{__version__} · workflow orchestration[/dim]"
)

MODE_CHOICES = [m.value for m in ExecutionMode]


def _load_config(project_dir, model=None, verbose=False, max_parallel=None):
    config = Config.load(project_dir)
    if model:
        if model in config.models:
            config.active_model = model
        else:
            config.models["_cli"] = ModelPreset(
                name="_cli",
                provider="openai",
                model=model,
                api_key="not-needed",
            )
            config.active_model = "_cli"
    if verbose:
        config.verbose = True
    if max_parallel:
        config.max_parallel = max_parallel
    configure_logging(config)
    return config


def _task_specs(text, plan_file=None):
    """Specs from a JSON plan file when given, otherwise from the request text."""
    if plan_file:
        with open(plan_file, encoding="utf-8") as f:
            specs = parse_task_plan(f.read())
        if not specs:
            console.print(f"[red]Error: no tasks found in plan file {plan_file}.[/red]")
            sys.exit(1)
        return specs
    specs = decompose_request(text)
    if not specs:
        console.print("[red]Error: empty request.[/red]")
        sys.exit(1)
    return specs


@click.group()
@click.version_option(__version__, prog_name="echoflow")
def cli():
    """echoflow: decompose a request into tasks and run them as a workflow."""


@cli.command()
@click.argument("request", nargs=-1)
@click.option("--plan-file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="JSON task list to run instead of decomposing REQUEST")
@click.option("--dry-run", is_flag=True, help="Echo task descriptions instead of calling a model")
@click.option("--mode", type=click.Choice(MODE_CHOICES), default=None, help="Execution mode")
@click.option("--max-parallel", "-p", type=click.IntRange(1, 32), default=None,
              help="Max tasks per round (hybrid mode)")
@click.option("--model", "-m", default=None, help="Model preset name")
@click.option("--project-dir", "-d", default=".", help="Project directory")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
def run(request, plan_file, dry_run, mode, max_parallel, model, project_dir, verbose):
    """Decompose REQUEST, execute the workflow and print the result."""
    text = " ".join(request)
    config = _load_config(project_dir, model=model, verbose=verbose, max_parallel=max_parallel)
    console.print(BANNER)

    specs = _task_specs(text, plan_file)
    text = text or plan_file

    renderer = WorkflowRenderer(console)
    engine = OrchestrationEngine(
        config,
        invoker=EchoInvoker() if dry_run else None,
        listener=renderer,
    )

    try:
        workflow = engine.create_workflow(
            name=text[:60],
            description=text,
            specs=specs,
            mode=ExecutionMode(mode) if mode else None,
        )
    except OrchestrationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    renderer.render_plan(workflow.tasks)
    report = engine.execute_workflow(workflow.id)
    renderer.render_summary(report, workflow.tasks)

    output = report.final_output
    if output:
        console.print(Panel(
            Text(output),
            title=f"[bold {ACCENT}] Result [/bold {ACCENT}]",
            title_align="left",
            border_style=BORDER,
            padding=(0, 1),
        ))
    if not report.success:
        sys.exit(1)


@cli.command()
@click.argument("request", nargs=-1)
@click.option("--plan-file", type=click.Path(exists=True, dir_okay=False), default=None)
@click.option("--mode", type=click.Choice(MODE_CHOICES), default=None)
@click.option("--project-dir", "-d", default=".")
def plan(request, plan_file, mode, project_dir):
    """Show how REQUEST would be split into tasks, without running it."""
    text = " ".join(request)
    config = _load_config(project_dir)
    specs = _task_specs(text, plan_file)
    text = text or plan_file

    engine = OrchestrationEngine(config, invoker=EchoInvoker())
    try:
        workflow = engine.create_workflow(
            name=text[:60],
            description=text,
            specs=specs,
            mode=ExecutionMode(mode) if mode else None,
        )
    except OrchestrationError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    WorkflowRenderer(console).render_plan(workflow.tasks)
    console.print(
        f"  [{DIM}]mode {workflow.execution_mode.value} · "
        f"width {workflow.max_parallel_width}[/{DIM}]"
    )


@cli.group("config", invoke_without_command=True)
@click.option("--project-dir", "-d", default=".")
@click.pass_context
def config_cmd(ctx, project_dir):
    """Show configuration, or change it with `set` / `reset`."""
    ctx.obj = Config.load(project_dir)
    if ctx.invoked_subcommand is not None:
        return
    cfg = ctx.obj
    table = Table(show_header=False, border_style=BORDER, padding=(0, 1))
    table.add_column("Key", style=f"bold {ACCENT}")
    table.add_column("Value")
    for key, value in cfg.summary().items():
        table.add_row(key, str(value))
    console.print(Panel(table, title=f"[bold {ACCENT}] Configuration [/bold {ACCENT}]",
                        title_align="left", border_style=BORDER))

    models = Table(show_header=True, header_style=f"bold {ACCENT}", border_style=BORDER)
    models.add_column("", width=1)
    models.add_column("Preset")
    models.add_column("Model")
    models.add_column("Key")
    for m in cfg.list_models():
        models.add_row("●" if m["active"] else "", m["name"], m["model"],
                       "set" if m["key"] else "-")
    console.print(models)


def _check_key(key):
    if key not in CONFIG_FIELDS:
        console.print(f"  [{ERROR}]Unknown configuration key: {key}[/{ERROR}]")
        console.print(f"  [{DIM}]Keys: {', '.join(CONFIG_FIELDS)}[/{DIM}]")
        sys.exit(1)


@config_cmd.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(cfg, key, value):
    """Validate VALUE for KEY and save it."""
    _check_key(key)
    ok, error = cfg.set_config_value(key, value)
    if not ok:
        console.print(f"  [{ERROR}]{key}: {error}[/{ERROR}]")
        sys.exit(1)
    cfg.save()
    console.print(f"  [{SUCCESS}]✓ Set {key} → {cfg.get_config_value(key)}[/{SUCCESS}]")
    console.print(f"  [{DIM}]saved to {cfg._config_source}[/{DIM}]")


@config_cmd.command("reset")
@click.argument("key")
@click.pass_obj
def config_reset(cfg, key):
    """Restore KEY to its default and save."""
    _check_key(key)
    cfg.reset_config_value(key)
    cfg.save()
    console.print(f"  [{SUCCESS}]✓ Reset {key} → {CONFIG_FIELDS[key].default}[/{SUCCESS}]")


@cli.command()
@click.option("--project-dir", "-d", default=".")
def agents(project_dir):
    """List the agent roster."""
    cfg = Config.load(project_dir)
    engine = OrchestrationEngine(cfg, invoker=EchoInvoker())
    table = Table(show_header=True, header_style=f"bold {ACCENT}", border_style=BORDER)
    table.add_column("ID", style="bold")
    table.add_column("Type")
    table.add_column("Domain")
    table.add_column("Capabilities")
    for agent in engine.get_agents():
        table.add_row(agent.id, agent.type, agent.domain or "-", ", ".join(agent.capabilities))
    console.print(table)


if __name__ == "__main__":
    cli()
