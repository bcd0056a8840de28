"""CLI application entry point."""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import typer
from pydantic import ValidationError
from rich.table import Table

from skill_catalog.api import handle_install, handle_scan
from skill_catalog.config.loader import USER_CONFIG_PATH, load_config
from skill_catalog.config.schema import SkillCatalogConfig
from skill_catalog.core.catalog import CatalogService
from skill_catalog.core.identities import resolve_identity
from skill_catalog.core.installer import Installer
from skill_catalog.utils.output import (
    configure_logging,
    console,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from skill_catalog.utils.paths import expand_path

app = typer.Typer(
    name="skill-catalog",
    help="Browse skill repositories and install skills for your coding agent",
    no_args_is_help=True,
)


# Template for init command
TEMPLATE_CONFIG = """version: "1.0"

settings:
  user_skill_dir: "~/.config/opencode/skill"
  project_skill_dir: ".opencode/skill"
  cache_ttl_seconds: 1800

catalogs: []
  # Example: an extra repository in the catalog
  # - id: team
  #   label: "Team skills"
  #   source: "my-org/agent-skills"
  #   subpath: "skills"
  #   git_identity_id: work

identities: []
  # Example: SSH key used for private repositories
  # - id: work
  #   name: "Work GitHub"
  #   ssh_key: "~/.ssh/id_ed25519_work"
"""


def _load(config: Optional[Path]) -> SkillCatalogConfig:
    try:
        return load_config(config)
    except ValidationError as e:
        print_error("Configuration validation failed:")
        console.print(e)
        raise typer.Exit(1)
    except Exception as e:
        print_error(f"Failed to load config: {e}")
        raise typer.Exit(1)


def _identity_payload(cfg: SkillCatalogConfig, identity_id: Optional[str]) -> Optional[dict[str, Any]]:
    if not identity_id:
        return None
    identity = resolve_identity(cfg, identity_id)
    if identity is None:
        print_error(f"Unknown git identity: {identity_id}")
        raise typer.Exit(1)
    return {"id": identity.id, "sshKeyPath": identity.ssh_key_path}


def _report_error(error: dict[str, Any]) -> None:
    print_error(error.get("message", "Unknown error"))
    if error.get("kind") == "authRequired":
        identities = error.get("identities") or []
        if identities:
            names = ", ".join(i["id"] for i in identities)
            print_info(f"Retry with --identity <id> (configured: {names})")
        else:
            print_info("Configure an SSH identity and retry with --identity <id>")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Skill catalog and installer."""
    configure_logging(verbose)


@app.command()
def init(
    path: Optional[Path] = typer.Argument(
        None,
        help=f"Path where config should be created (default: {USER_CONFIG_PATH})",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite existing config file",
    ),
):
    """Create a config file template."""
    try:
        if path is None:
            path = expand_path(USER_CONFIG_PATH)

        if path.exists() and not force:
            print_error(f"Config file already exists: {path}")
            print_info("Use --force to overwrite")
            raise typer.Exit(1)

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(TEMPLATE_CONFIG)

        print_success(f"Created config file: {path}")

    except typer.Exit:
        raise
    except Exception as e:
        print_error(f"Failed to create config: {e}")
        raise typer.Exit(1)


@app.command()
def sources(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config file (overrides default search)"
    ),
):
    """List catalog sources."""
    cfg = _load(config)
    service = CatalogService(cfg)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="green")
    table.add_column("Label")
    table.add_column("Source")
    table.add_column("Subpath")

    for source in service.sources():
        table.add_row(source.id, source.label, source.source, source.subpath or "")

    console.print(table)


@app.command()
def catalog(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config file (overrides default search)"
    ),
    project_dir: Optional[Path] = typer.Option(
        None, "--project-dir", "-p", help="Project whose installed skills are shown"
    ),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the scan cache"),
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of tables"),
):
    """Scan every catalog source and show its skills."""
    cfg = _load(config)
    service = CatalogService(cfg)

    try:
        entries = asyncio.run(service.get_catalog(working_directory=project_dir, refresh=refresh))
    except Exception as e:
        print_error(f"Failed to build catalog: {e}")
        raise typer.Exit(1)

    if json_output:
        payload = {
            "ok": True,
            "sources": [
                {
                    "id": s.id,
                    "label": s.label,
                    "source": s.source,
                    "subpath": s.subpath,
                    "gitIdentityId": s.git_identity_id,
                }
                for s in service.sources()
            ],
            "itemsBySource": {sid: [e.to_dict() for e in items] for sid, items in entries.items()},
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    for source in service.sources():
        items = entries.get(source.id, [])
        console.print(f"[bold]{source.label}[/bold] ({source.source})")
        if not items:
            print_info("No skills found")
            console.print()
            continue

        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Skill", style="green")
        table.add_column("Description")
        table.add_column("Installed")
        for entry in items:
            installed = entry.installed.scope if entry.installed else ""
            table.add_row(entry.item.skill_name, entry.item.description or "", installed)
        console.print(table)
        console.print()


@app.command()
def scan(
    source: str = typer.Argument(..., help="Repository: owner/repo[/subpath], HTTPS or SSH URL"),
    subpath: Optional[str] = typer.Option(None, "--subpath", "-s", help="Directory to scan"),
    identity: Optional[str] = typer.Option(None, "--identity", "-i", help="Git identity id"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config file (overrides default search)"
    ),
    refresh: bool = typer.Option(False, "--refresh", help="Bypass the scan cache"),
    json_output: bool = typer.Option(False, "--json", help="Print the JSON response"),
):
    """List the skills in a repository."""
    cfg = _load(config)
    service = CatalogService(cfg)

    payload = {
        "source": source,
        "subpath": subpath,
        "identity": _identity_payload(cfg, identity),
        "refresh": refresh,
    }
    response = asyncio.run(handle_scan(payload, service))

    if json_output:
        typer.echo(json.dumps(response, indent=2))
        if not response["ok"]:
            raise typer.Exit(1)
        return

    if not response["ok"]:
        _report_error(response["error"])
        raise typer.Exit(1)

    where = response["normalizedRepo"]
    if response.get("effectiveSubpath"):
        where = f"{where}/{response['effectiveSubpath']}"
    print_info(f"Found {len(response['items'])} skill(s) in {where}")

    if not response["items"]:
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Skill", style="green")
    table.add_column("Directory")
    table.add_column("Description")
    table.add_column("Notes")
    for item in response["items"]:
        notes = list(item.get("warnings", []))
        if not item["installable"]:
            notes.insert(0, "not installable")
        table.add_row(item["skillName"], item["skillDir"], item.get("description", ""), "; ".join(notes))
    console.print(table)


def _ask_conflict_decisions(conflicts: list[dict[str, str]]) -> dict[str, str]:
    decisions = {}
    for conflict in conflicts:
        overwrite = typer.confirm(
            f"Skill '{conflict['skillName']}' is already installed ({conflict['scope']}). Overwrite?",
            default=False,
        )
        decisions[conflict["skillName"]] = "overwrite" if overwrite else "skip"
    return decisions


@app.command()
def install(
    source: str = typer.Argument(..., help="Repository: owner/repo[/subpath], HTTPS or SSH URL"),
    skill_dirs: list[str] = typer.Argument(..., help="Skill directories within the repository"),
    scope: str = typer.Option("user", "--scope", help="Install scope: user or project"),
    project_dir: Optional[Path] = typer.Option(
        None, "--project-dir", "-p", help="Project root for project-scope installs"
    ),
    subpath: Optional[str] = typer.Option(None, "--subpath", "-s", help="Repository subpath"),
    identity: Optional[str] = typer.Option(None, "--identity", "-i", help="Git identity id"),
    skip_existing: bool = typer.Option(False, "--skip-existing", help="Skip skills already installed"),
    overwrite_existing: bool = typer.Option(
        False, "--overwrite-existing", help="Replace skills already installed"
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config file (overrides default search)"
    ),
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive", help="Ask what to do with skills already installed"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the JSON response"),
):
    """Install skills from a repository.

    If a skill is already installed and neither --skip-existing nor
    --overwrite-existing is given, you are asked what to do with it,
    unless --json or --no-interactive is set.
    """
    if skip_existing and overwrite_existing:
        print_error("--skip-existing and --overwrite-existing are mutually exclusive")
        raise typer.Exit(1)

    cfg = _load(config)
    installer = Installer()

    policy = None
    if skip_existing:
        policy = "skipAll"
    elif overwrite_existing:
        policy = "overwriteAll"

    payload: dict[str, Any] = {
        "source": source,
        "subpath": subpath,
        "identity": _identity_payload(cfg, identity),
        "scope": scope,
        "workingDirectory": str((project_dir or Path.cwd()).resolve()) if scope == "project" else None,
        "userSkillDir": cfg.settings.user_skill_dir,
        "selections": [{"skillDir": d} for d in skill_dirs],
        "conflictPolicy": policy,
    }
    response = asyncio.run(handle_install(payload, installer, cfg))

    error = response.get("error") or {}
    if not response["ok"] and error.get("kind") == "conflicts" and interactive and not json_output:
        payload["conflictDecisions"] = _ask_conflict_decisions(error.get("conflicts", []))
        response = asyncio.run(handle_install(payload, installer, cfg))

    if json_output:
        typer.echo(json.dumps(response, indent=2))
        if not response["ok"]:
            raise typer.Exit(1)
        return

    if not response["ok"]:
        _report_error(response["error"])
        raise typer.Exit(1)

    for entry in response["installed"]:
        print_success(f"Installed {entry['skillName']} ({entry['scope']})")
    for entry in response["skipped"]:
        print_warning(f"Skipped {entry['skillName']}: {entry['reason']}")


if __name__ == "__main__":
    app()
