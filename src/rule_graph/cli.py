"""Command-line interface for rule graph."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="rule-graph",
    help="Dependency graphs for web ACL and load balancer listener rules"
)
console = Console(stderr=True)


def _builder(rules_file: Path, alb_file: Optional[Path], layer: str,
             nodes_per_row: Optional[int] = None, verbose: bool = False):
    """Load the documents for a layer and return a configured builder."""
    # Import here to keep `--help` fast
    from .builder import ALB_LAYER, COMBINED_LAYER, LAYERS, RuleGraphBuilder
    from .config import Settings
    from .loader import load_rule_document

    if layer not in LAYERS:
        raise ValueError(f"Unsupported layer: {layer}")

    rules = load_rule_document(rules_file)
    if layer == ALB_LAYER:
        acl_rules, alb_rules = [], rules
    else:
        if layer == COMBINED_LAYER and alb_file is None:
            raise ValueError("--alb is required for the combined layer")
        acl_rules = rules
        alb_rules = load_rule_document(alb_file) if alb_file else []

    return RuleGraphBuilder(
        acl_rules=acl_rules,
        alb_rules=alb_rules,
        settings=Settings.from_env(nodes_per_row=nodes_per_row),
        console=console if verbose else None,
    )


def _fail(error: Exception):
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(code=1)


@app.command()
def graph(
    rules_file: Path = typer.Argument(..., help="JSON rule document (web ACL, or listener rules with --layer alb)"),
    alb_file: Optional[Path] = typer.Option(None, "--alb", help="Listener rule document for the combined layer"),
    layer: str = typer.Option("acl", "--layer", "-l", help="acl, alb or combined"),
    order: str = typer.Option("dependency", "--order", help="dependency or priority"),
    nodes_per_row: Optional[int] = typer.Option(None, "--nodes-per-row", "-n", min=1, help="Nodes per layout row"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write graph JSON here instead of stdout"),
    png: Optional[Path] = typer.Option(None, "--png", help="Also render the graph to a PNG"),
):
    """Build and lay out a rule dependency graph."""
    try:
        builder = _builder(rules_file, alb_file, layer, nodes_per_row, verbose=True)
        result = builder.layout(builder.build(layer), order)
    except ValueError as e:
        _fail(e)

    payload = json.dumps(result.to_dict(), indent=2, default=str)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(payload)
        console.print(f"[bold green]Graph written to[/bold green] {output}")
    else:
        typer.echo(payload)

    if png:
        from .visualize import render_graph
        render_graph(result, str(png))
        console.print(f"[bold green]Image written to[/bold green] {png}")


@app.command()
def subgraph(
    rules_file: Path = typer.Argument(..., help="JSON rule document"),
    node_id: str = typer.Argument(..., help="Id of the focus node, e.g. acl-BlockBadBots"),
    alb_file: Optional[Path] = typer.Option(None, "--alb", help="Listener rule document for the combined layer"),
    layer: str = typer.Option("acl", "--layer", "-l", help="acl, alb or combined"),
    mode: str = typer.Option("direct", "--mode", "-m", help="direct, dependents, dependencies or lineage"),
):
    """Print the subgraph around one node."""
    from .subgraph import EXTRACTORS

    try:
        if mode not in EXTRACTORS:
            raise ValueError(f"Unsupported mode: {mode}")
        full = _builder(rules_file, alb_file, layer).build(layer)
    except ValueError as e:
        _fail(e)

    if full.node(node_id) is None:
        _fail(ValueError(f"No node with id {node_id}"))

    result = EXTRACTORS[mode](node_id, full.nodes, full.edges)
    typer.echo(json.dumps(result.to_dict(), indent=2, default=str))


@app.command()
def warnings(
    rules_file: Path = typer.Argument(..., help="JSON rule document"),
    alb_file: Optional[Path] = typer.Option(None, "--alb", help="Listener rule document for the combined layer"),
    layer: str = typer.Option("acl", "--layer", "-l", help="acl, alb or combined"),
):
    """List per-rule warnings."""
    from .builder import collect_warnings

    try:
        full = _builder(rules_file, alb_file, layer).build(layer)
    except ValueError as e:
        _fail(e)

    entries = collect_warnings(full.nodes)
    if not entries:
        typer.echo("No warnings")
        return

    table = Table(title="Rule warnings")
    table.add_column("Rule", style="bold")
    table.add_column("Warning")
    for entry in entries:
        for message in entry['warnings']:
            table.add_row(entry['rule'], message)
    Console(width=200).print(table)


@app.command()
def version():
    """Show version information."""
    from . import __version__
    typer.echo("Rule Dependency Graph")
    typer.echo(f"Version: {__version__}")


if __name__ == "__main__":
    app()
