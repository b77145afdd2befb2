"""
envibe CLI - Granular AI access control for environment variables

Main entry point for the envibe command-line tool.
"""

import json
import sys
from collections import Counter
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core.types import AccessLevel, Manifest
from .core.errors import ManifestNotFoundError, ManifestParseError
from .core.dotenv import (
    ENV_FILENAME,
    ENV_AI_FILENAME,
    load_env_file,
    update_env_variable,
)
from .core.patterns import classify_variables
from .core.filter import filter_for_ai, generate_ai_env_content, validate_modification
from .core.manifest import (
    MANIFEST_FILENAME,
    MANIFEST_VERSION,
    check_manifest,
    create_empty_manifest,
    create_fallback_manifest,
    load_manifest,
    load_raw_manifest,
    manifest_exists,
    save_manifest,
)
from .core.discovery import find_example_file
from .core.guards import CLAUDE_SETTINGS_FILE, GITIGNORE_FILE, configure_claude_settings, configure_gitignore


console = Console()

ACCESS_STYLES = {
    AccessLevel.FULL: "green",
    AccessLevel.READ_ONLY: "cyan",
    AccessLevel.PLACEHOLDER: "yellow",
    AccessLevel.SCHEMA_ONLY: "magenta",
    AccessLevel.HIDDEN: "red",
}


def _resolve(project_root: str, path: str) -> Path:
    """Resolve a user-supplied path against the project root."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return Path(project_root) / candidate


def _load_manifest_or_exit(project_root: str) -> Manifest:
    """Load the manifest, turning load errors into a message and exit code 1."""
    path = Path(project_root) / MANIFEST_FILENAME
    try:
        return load_manifest(str(path))
    except ManifestNotFoundError:
        console.print("[red]Error: No manifest found. Run 'envibe init' first.[/red]")
        sys.exit(1)
    except ManifestParseError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        console.print(f"[dim]Fix {MANIFEST_FILENAME} or recreate it with 'envibe init --force'.[/dim]")
        sys.exit(1)


def _write_ai_env(env: dict, manifest: Manifest, output: Path) -> list:
    filtered = filter_for_ai(env, manifest)
    output.write_text(generate_ai_env_content(filtered))
    return filtered


def _print_access_summary(filtered: list):
    counts = Counter(v.access for v in filtered)

    table = Table(title="Access level summary", box=box.ROUNDED)
    table.add_column("Access", style="bold")
    table.add_column("Variables", justify="right")
    for level in AccessLevel:
        if counts[level]:
            style = ACCESS_STYLES[level]
            table.add_row(f"[{style}]{level.value}[/{style}]", str(counts[level]))

    console.print(table)


@click.group()
@click.version_option(package_name="envibe")
def cli():
    """
    envibe - Granular AI access control for environment variables
    """


@cli.command()
@click.option('-f', '--force', is_flag=True, help='Overwrite existing manifest')
@click.option('-e', '--env', 'env_path', default=ENV_FILENAME, help='Path to .env file')
@click.option('--project-root', default=".", help='Project root directory')
def init(force, env_path, project_root):
    """
    Initialize .env.manifest.yaml from an existing .env file.

    Variable names are auto-classified; review the result before relying
    on it.
    """
    manifest_path = Path(project_root) / MANIFEST_FILENAME

    if manifest_path.exists() and not force:
        console.print(f"[red]Error: {MANIFEST_FILENAME} already exists. Use --force to overwrite.[/red]")
        sys.exit(1)

    parsed = load_env_file(str(_resolve(project_root, env_path)))
    names = list(parsed.variables.keys())

    if not names:
        console.print(f"[yellow]No variables found in {env_path}[/yellow]")
        save_manifest(create_empty_manifest(), str(manifest_path))
        console.print(f"[green]✓ Created empty {MANIFEST_FILENAME}[/green]")
        return

    console.print(f"[cyan]Found {len(names)} variables in {env_path}[/cyan]")
    console.print("[dim]Auto-classifying based on common patterns...[/dim]\n")

    classified = classify_variables(names)
    save_manifest(Manifest(version=MANIFEST_VERSION, variables=classified), str(manifest_path))

    by_access = {}
    for key, config in classified.items():
        by_access.setdefault(config.access, []).append(key)

    for level in AccessLevel:
        keys = by_access.get(level)
        if not keys:
            continue
        style = ACCESS_STYLES[level]
        label = escape(f"[{level.value}]")
        console.print(f"[{style}]{label}[/{style}] ({len(keys)} variables)", highlight=False)
        for key in keys[:5]:
            console.print(f"  • {key}")
        if len(keys) > 5:
            console.print(f"  [dim]... and {len(keys) - 5} more[/dim]")

    console.print(f"\n[green]✓ Created {MANIFEST_FILENAME}[/green]")
    console.print("\nNext steps:")
    console.print(f"  1. Review and adjust access levels in {MANIFEST_FILENAME}")
    console.print("  2. Run [cyan]envibe generate[/cyan]")
    console.print("  3. Run [cyan]envibe setup[/cyan] to configure Claude Code")


@cli.command()
@click.option('-o', '--output', default=ENV_AI_FILENAME, help='Output file path')
@click.option('-e', '--env', 'env_path', default=ENV_FILENAME, help='Path to .env file')
@click.option('--stdout', 'to_stdout', is_flag=True, help='Print to stdout instead of writing a file')
@click.option('--project-root', default=".", help='Project root directory')
def generate(output, env_path, to_stdout, project_root):
    """
    Generate the AI-safe .env.ai file.
    """
    manifest = _load_manifest_or_exit(project_root)
    env = load_env_file(str(_resolve(project_root, env_path))).variables

    if to_stdout:
        click.echo(generate_ai_env_content(filter_for_ai(env, manifest)), nl=False)
        return

    filtered = _write_ai_env(env, manifest, _resolve(project_root, output))
    console.print(f"[green]✓ Generated {output} with {len(filtered)} variables[/green]")
    _print_access_summary(filtered)


@cli.command()
@click.option('--for-ai', is_flag=True, help='Show only what the AI would see')
@click.option('--json', 'as_json', is_flag=True, help='Output as JSON')
@click.option('-e', '--env', 'env_path', default=ENV_FILENAME, help='Path to .env file')
@click.option('--project-root', default=".", help='Project root directory')
def view(for_ai, as_json, env_path, project_root):
    """
    Display environment variables with their access levels.
    """
    manifest = _load_manifest_or_exit(project_root)
    env = load_env_file(str(_resolve(project_root, env_path))).variables
    filtered = filter_for_ai(env, manifest)

    if as_json:
        click.echo(json.dumps([v.to_dict() for v in filtered], indent=2))
        return

    if for_ai:
        table = Table(title="AI-visible environment variables", box=box.ROUNDED)
        table.add_column("Key", style="cyan", no_wrap=True)
        table.add_column("Value")
        table.add_column("Access")
        table.add_column("Writable")
        table.add_column("Description", style="dim")

        for v in filtered:
            style = ACCESS_STYLES[v.access]
            table.add_row(
                v.key,
                escape(v.display_value),
                f"[{style}]{v.access.value}[/{style}]",
                "✓" if v.can_modify else "✗",
                escape(v.description or ""),
            )
        console.print(table)
        return

    table = Table(title="All environment variables", box=box.ROUNDED)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_column("Access")
    table.add_column("Health")
    table.add_column("Description", style="dim")

    for key in sorted(set(env) | set(manifest.variables)):
        config = manifest.variables.get(key)
        value = env.get(key)

        if config is None:
            access_label = "[dim]unclassified[/dim]"
        else:
            style = ACCESS_STYLES[config.access]
            access_label = f"[{style}]{config.access.value}[/{style}]"

        if config is not None and config.access == AccessLevel.HIDDEN:
            display = "***HIDDEN***"
        elif value is None:
            display = "[dim](not set)[/dim]"
        else:
            display = escape(value)

        if config is not None and config.required and value is None:
            health = "[red]⚠ Required but not set[/red]"
        elif value is None:
            health = "[yellow]⚠ Unset[/yellow]"
        else:
            health = "✓ Set"

        description = config.description if config is not None else None
        table.add_row(key, display, access_label, health, escape(description or ""))

    console.print(table)


@cli.command(name="set")
@click.argument('assignment', metavar='KEY=VALUE')
@click.option('-e', '--env', 'env_path', default=ENV_FILENAME, help='Path to .env file')
@click.option('--force', is_flag=True, help='Bypass access control (not recommended)')
@click.option('--update-ai', is_flag=True, help='Also regenerate .env.ai')
@click.option('--project-root', default=".", help='Project root directory')
def set_variable(assignment, env_path, force, update_ai, project_root):
    """
    Set an environment variable, respecting access permissions.
    """
    if "=" not in assignment:
        console.print("[red]Error: Invalid format. Use KEY=VALUE[/red]")
        sys.exit(1)

    key, value = assignment.split("=", 1)
    key = key.strip()
    if not key:
        console.print("[red]Error: Key cannot be empty[/red]")
        sys.exit(1)

    manifest = _load_manifest_or_exit(project_root)

    if not force:
        validation = validate_modification(key, manifest)
        if not validation.allowed:
            console.print(f"[red]Error: {escape(validation.reason)}[/red]")
            console.print("[dim]To bypass access control, use --force (not recommended).[/dim]")
            sys.exit(1)

    env_file = _resolve(project_root, env_path)
    update_env_variable(key, value, str(env_file))
    console.print(f"[green]✓ Set {escape(key)} in {env_path}[/green]")

    if update_ai:
        env = load_env_file(str(env_file)).variables
        _write_ai_env(env, manifest, Path(project_root) / ENV_AI_FILENAME)
        console.print(f"[green]✓ Updated {ENV_AI_FILENAME}[/green]")


@cli.command()
@click.option('-e', '--env', 'env_path', default=ENV_FILENAME, help='Path to .env file')
@click.option('--strict', is_flag=True, help='Treat warnings as errors')
@click.option('--project-root', default=".", help='Project root directory')
def validate(env_path, strict, project_root):
    """
    Validate the manifest against the .env file.
    """
    manifest = _load_manifest_or_exit(project_root)
    env = load_env_file(str(_resolve(project_root, env_path))).variables
    raw = load_raw_manifest(str(Path(project_root) / MANIFEST_FILENAME))

    issues = check_manifest(env, manifest, env_path=env_path, raw_manifest=raw)
    errors = [i for i in issues if i.is_error]
    warnings = [i for i in issues if not i.is_error]

    if not issues:
        console.print("[green]✓ Validation passed. No issues found.[/green]")
        return

    if errors:
        console.print("\n[red]Errors:[/red]")
        for issue in errors:
            console.print(f"  [red][ERROR][/red] {escape(issue.message)}", highlight=False)

    if warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for issue in warnings:
            console.print(f"  [yellow][WARN][/yellow] {escape(issue.message)}", highlight=False)

    console.print(f"\nSummary: {len(errors)} errors, {len(warnings)} warnings")

    if errors or (strict and warnings):
        sys.exit(1)


@cli.command()
@click.option('--skip-claude', is_flag=True, help='Skip Claude Code settings configuration')
@click.option('--skip-gitignore', is_flag=True, help='Skip .gitignore configuration')
@click.option('--project-root', default=".", help='Project root directory')
def setup(skip_claude, skip_gitignore, project_root):
    """
    Full setup: manifest, .env.ai, .gitignore and Claude Code settings.
    """
    console.print("[cyan]Setting up envibe...[/cyan]\n")
    root = Path(project_root)
    manifest_path = root / MANIFEST_FILENAME
    source_file = None

    # Step 1: manifest
    if manifest_exists(str(manifest_path)):
        console.print(f"[1/4] Found existing {MANIFEST_FILENAME}")
        manifest = _load_manifest_or_exit(project_root)
    else:
        console.print(f"[1/4] Creating {MANIFEST_FILENAME}...")
        source_file = find_example_file(project_root)
        names = list(load_env_file(str(source_file)).variables) if source_file else []

        if names:
            manifest = Manifest(version=MANIFEST_VERSION, variables=classify_variables(names))
            console.print(f"     Classified {len(names)} variables from {source_file.name}")
        else:
            manifest = create_fallback_manifest()
            if source_file:
                console.print(f"     Created fallback manifest ({source_file.name} was empty)")
            else:
                console.print("     Created fallback manifest (no .env.example found)")
                console.print(f"     [dim]Edit {MANIFEST_FILENAME} to match your actual variables[/dim]")
        save_manifest(manifest, str(manifest_path))

    # Step 2: .env.ai, from real values when available
    console.print(f"[2/4] Generating {ENV_AI_FILENAME}...")
    env_file = root / ENV_FILENAME
    if env_file.exists():
        env = load_env_file(str(env_file)).variables
    elif source_file:
        env = load_env_file(str(source_file)).variables
    else:
        env = {}
    filtered = _write_ai_env(env, manifest, root / ENV_AI_FILENAME)
    console.print(f"     Generated with {len(filtered)} AI-visible variables")

    # Step 3: .gitignore
    if skip_gitignore:
        console.print(f"[3/4] Skipped {GITIGNORE_FILE} configuration")
    else:
        console.print(f"[3/4] Configuring {GITIGNORE_FILE}...")
        added = configure_gitignore(project_root)
        console.print(f"     Added {added} patterns" if added else "     Already configured")

    # Step 4: Claude Code
    if skip_claude:
        console.print("[4/4] Skipped Claude Code configuration")
    else:
        console.print(f"[4/4] Configuring {CLAUDE_SETTINGS_FILE}...")
        result = configure_claude_settings(project_root)
        if result.recovered:
            console.print("     [yellow]⚠ Existing settings could not be parsed and were replaced[/yellow]")
        changes = []
        if result.deny_added:
            changes.append(f"{result.deny_added} deny rules")
        if result.allow_added:
            changes.append(f"{result.allow_added} allow rules")
        if not result.mcp_already_configured:
            changes.append("MCP server")
        if changes:
            console.print(f"     Added: {', '.join(changes)}")
            if result.discovered_files:
                console.print(f"     Protected files: {', '.join(result.discovered_files)}")
        else:
            console.print("     Already configured")

    console.print("\n[bold green]✓ Setup complete![/bold green]")
    console.print("\nNext steps:")
    console.print(f"  1. Review {MANIFEST_FILENAME} and adjust access levels")
    console.print(f"  2. Put your real values in {ENV_FILENAME} (it is gitignored)")
    console.print(f"  3. Run [cyan]envibe generate[/cyan] to refresh {ENV_AI_FILENAME}")


@cli.command()
@click.option('--project-root', default=None, help='Project root directory')
def mcp(project_root):
    """Start MCP (Model Context Protocol) server."""
    from .mcp_server import run_server
    run_server(project_root)


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
