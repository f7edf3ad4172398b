"""CLI — Policy document inspection commands."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from callgate.exceptions import PolicyLoadError
from callgate.policy import PolicyDocument, lint, load_policy

app = typer.Typer(help="Inspect and lint role / rate-limit policy files.")
console = Console()


def _load(path: Path) -> PolicyDocument:
    try:
        return load_policy(path)
    except PolicyLoadError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(1)


@app.command("show")
def show_policy(
    path: Path = typer.Argument(help="Policy YAML file."),
    json_output: bool = typer.Option(False, "--json", help="Output the validated document as JSON."),
) -> None:
    """Show the roles and rate limits declared in a policy file."""
    document = _load(path)

    if json_output:
        data = document.model_dump(mode="json", by_alias=True)
        console.print_json(data=data, sort_keys=True)
        return

    roles = Table(title="Roles")
    roles.add_column("Role", style="cyan")
    roles.add_column("Inherits")
    roles.add_column("Own permissions")
    roles.add_column("Effective", justify="right")
    for role in document.roles:
        roles.add_row(
            role.name,
            ", ".join(role.inherits) or "-",
            ", ".join(sorted(role.permissions)) or "-",
            str(len(document.permissions_for(role.name))),
        )
    console.print(roles)

    limits = Table(title="Rate limits")
    limits.add_column("Scope", style="cyan")
    limits.add_column("Max requests", justify="right")
    limits.add_column("Window")
    limits.add_column("Exempt roles")
    scoped = []
    if document.rate_limits.global_limit is not None:
        scoped.append(("(global)", document.rate_limits.global_limit))
    scoped += sorted(document.rate_limits.methods.items())
    for scope, config in scoped:
        limits.add_row(
            scope,
            str(config.max_requests),
            str(config.window),
            ", ".join(sorted(config.exempt_roles)) or "-",
        )
    console.print(limits)


@app.command("lint")
def lint_policy(
    path: Path = typer.Argument(help="Policy YAML file."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero on warnings too."),
) -> None:
    """Report inheritance cycles, undefined roles and empty roles."""
    document = _load(path)
    findings = lint(document)

    if not findings:
        console.print("[green]No problems found.[/green]")
        return

    table = Table(title=f"Findings in {path}")
    table.add_column("Severity")
    table.add_column("Code", style="cyan")
    table.add_column("Subject")
    table.add_column("Message")
    for finding in findings:
        colour = "red" if finding.severity == "error" else "yellow"
        table.add_row(
            f"[{colour}]{finding.severity}[/{colour}]",
            finding.code,
            finding.subject,
            finding.message,
        )
    console.print(table)

    if any(f.severity == "error" for f in findings) or strict:
        raise typer.Exit(1)


@app.command("permissions")
def role_permissions(
    path: Path = typer.Argument(help="Policy YAML file."),
    role: str = typer.Argument(help="Role to flatten."),
) -> None:
    """Print the effective (flattened) permissions of a role."""
    document = _load(path)
    if role not in document.role_map:
        console.print(f"[red]Error: role '{role}' is not defined in {path}[/red]")
        raise typer.Exit(1)

    for permission in sorted(document.permissions_for(role)):
        console.print(permission)
