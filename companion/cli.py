"""Code Companion CLI — Typer + Rich terminal interface.

Commands: chat, ask, deploy, status, config, keys, serve.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from companion import __version__
from companion.deploy.client import VercelClient
from companion.deploy.service import DeploymentService
from companion.directive.finalizer import parse_directive_payload
from companion.display import TurnDisplay
from companion.errors import CompanionError, ConfigurationError
from companion.events import TurnEventEmitter
from companion.keys import KNOWN_KEYS, KEYS_FILE, get_configured_keys, load_keys_env, save_keys
from companion.orchestrator import TurnOrchestrator
from companion.providers.litellm_provider import LiteLLMProvider
from companion.schemas.chat import ChatMessage, Role, TurnResult
from companion.schemas.config import CompanionConfig, ProjectTemplate
from companion.schemas.deployment import DeploymentResult
from companion.settings import CONFIG_DIR, load_config

# Load keys from ~/.companion/keys.env and .env on startup
load_keys_env()

console = Console()

app = typer.Typer(
    name="companion",
    help="Chat your way to a deployed web app.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(name="config", help="Show configuration.", no_args_is_help=True)
app.add_typer(config_app, name="config")

_state: dict[str, Path | None] = {"config_path": None}


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"companion {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    config: Path = typer.Option(
        None, "--config", "-c",
        help="Path to a settings TOML file.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Code Companion — chat, generate, deploy."""
    _state["config_path"] = config
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ── Helpers ──────────────────────────────────────────────────────


def _load_config() -> CompanionConfig:
    """Load settings, exit on error."""
    try:
        return load_config(_state["config_path"])
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _make_orchestrator(
    config: CompanionConfig,
    client: VercelClient | None,
    emitter: TurnEventEmitter | None,
) -> TurnOrchestrator:
    deployer = DeploymentService(client, config.deploy) if client is not None else None
    return TurnOrchestrator(
        LiteLLMProvider(config.model),
        deployer,
        emitter=emitter,
        config=config,
    )


async def _run_turn(
    config: CompanionConfig,
    history: list[ChatMessage],
    *,
    stream: bool,
    deploy: bool,
) -> TurnResult:
    emitter = TurnEventEmitter(keep_history=False)
    client = VercelClient.from_config(config.deploy) if deploy else None
    orchestrator = _make_orchestrator(config, client, emitter)
    try:
        if not stream:
            with console.status("[cyan]Thinking...[/cyan]"):
                return await orchestrator.run_turn(history, stream=False)

        display = TurnDisplay(console)
        emitter.add_listener(display.create_listener())
        with display:
            return await orchestrator.run_turn(history, stream=True)
    finally:
        if client is not None:
            await client.aclose()


def _print_turn(result: TurnResult) -> None:
    if result.reply is not None:
        console.print(Markdown(result.reply.message))
    if result.deployment is not None:
        _print_deployment(result.deployment)
    if result.follow_up:
        console.print()
        console.print(Markdown(result.follow_up))


def _print_deployment(result: DeploymentResult) -> None:
    if result.success:
        body = f"[bold]URL:[/bold] {result.url}\n[bold]ID:[/bold] {result.deployment_id}"
        if result.note:
            body += f"\n[yellow]{result.note}[/yellow]"
        console.print(Panel(body, title="[bold green]Deployed[/bold green]", border_style="green"))
    else:
        console.print(
            Panel(
                f"{result.error}\n[dim]({result.failure})[/dim]",
                title="[bold red]Deployment failed[/bold red]",
                border_style="red",
            )
        )


def _turn_or_exit(config: CompanionConfig, history: list[ChatMessage], *, stream: bool, deploy: bool) -> TurnResult:
    try:
        return asyncio.run(_run_turn(config, history, stream=stream, deploy=deploy))
    except ConfigurationError as e:
        console.print(f"[red]{e}.[/red] Set {config.model.api_key_env} or run [bold]companion keys --set[/bold].")
        raise typer.Exit(1) from None
    except CompanionError:
        console.print(f"[red]{config.chat.error_message}[/red]")
        raise typer.Exit(1) from None


# ── companion ask / chat ─────────────────────────────────────────


@app.command()
def ask(
    prompt: str = typer.Argument(..., help="What you want to build or ask."),
    no_stream: bool = typer.Option(False, "--no-stream", help="Wait for the full reply."),
    no_deploy: bool = typer.Option(False, "--no-deploy", help="Never deploy generated code."),
) -> None:
    """Run a single chat turn."""
    config = _load_config()
    history = [ChatMessage(role=Role.USER, content=prompt)]
    result = _turn_or_exit(config, history, stream=not no_stream, deploy=not no_deploy)
    _print_turn(result)


@app.command()
def chat(
    no_deploy: bool = typer.Option(False, "--no-deploy", help="Never deploy generated code."),
) -> None:
    """Interactive chat. Empty line or Ctrl-D to quit."""
    config = _load_config()
    console.print(
        Panel(
            "Tell me about the app or website you want to build, "
            "and I'll create it for you!",
            title="[bold cyan]Code Companion[/bold cyan]",
            border_style="cyan",
        )
    )
    history: list[ChatMessage] = []
    while True:
        try:
            line = console.input("[bold]you ›[/bold] ").strip()
        except (EOFError, KeyboardInterrupt):
            break
        if not line:
            break

        history.append(ChatMessage(role=Role.USER, content=line))
        result = _turn_or_exit(config, history, stream=True, deploy=not no_deploy)
        _print_turn(result)

        if result.reply is not None:
            history.append(ChatMessage(role=Role.ASSISTANT, content=result.reply.message))
        if result.follow_up:
            history.append(ChatMessage(role=Role.ASSISTANT, content=result.follow_up))


# ── companion deploy / status ────────────────────────────────────


def _read_code(path: Path) -> str | dict[str, str]:
    if path.is_file():
        return path.read_text(encoding="utf-8")
    files: dict[str, str] = {}
    for file in sorted(p for p in path.rglob("*") if p.is_file()):
        files[file.relative_to(path).as_posix()] = file.read_text(encoding="utf-8")
    return files


@app.command()
def deploy(
    path: Path = typer.Argument(..., exists=True, help="A file, or a directory of files."),
    name: str = typer.Option("", "--name", "-n", help="Project name (default from config)."),
    template: ProjectTemplate = typer.Option(None, "--template", "-t", help="Project scaffold."),
) -> None:
    """Deploy local code without a chat turn."""
    config = _load_config()
    if template is not None:
        config.deploy.template = template

    try:
        directive = parse_directive_payload(
            {"shouldDeploy": True, "projectName": name or None, "code": _read_code(path)},
            config.deploy.default_project_name,
        )
    except (ValidationError, UnicodeDecodeError) as e:
        console.print(f"[red]Cannot deploy {path}:[/red] {e}")
        raise typer.Exit(1) from None

    async def _deploy() -> DeploymentResult:
        async with VercelClient.from_config(config.deploy) as client:
            service = DeploymentService(client, config.deploy)
            with console.status(f"[cyan]Deploying {directive.project_name}...[/cyan]"):
                return await service.deploy(directive)

    result = asyncio.run(_deploy())
    _print_deployment(result)
    if not result.success:
        raise typer.Exit(1)


@app.command()
def status(deployment_id: str = typer.Argument(..., help="Deployment id.")) -> None:
    """Show a deployment's current state."""
    config = _load_config()

    async def _status() -> dict:
        async with VercelClient.from_config(config.deploy) as client:
            return await client.get_deployment(deployment_id)

    try:
        data = asyncio.run(_status())
    except CompanionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title=f"Deployment {deployment_id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("State", str(data.get("readyState", "?")))
    table.add_row("URL", str(data.get("url", "")))
    table.add_row("Target", str(data.get("target") or ""))
    console.print(table)


# ── companion config / keys ──────────────────────────────────────


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration."""
    config = _load_config()

    table = Table(title="Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Model", f"{config.model.display_name} ({config.model.model})")
    table.add_row("Max Tokens", str(config.model.max_tokens))
    table.add_row("Timeout", f"{config.model.timeout}s")
    table.add_row("Template", config.deploy.template.value)
    table.add_row("Target", config.deploy.target)
    table.add_row("Hosting API", config.deploy.api_base)
    table.add_row(
        "Polling",
        f"{config.deploy.poll.max_attempts} x {config.deploy.poll.delay:g}s "
        f"(ceiling {config.deploy.poll.ceiling:g}s)",
    )
    console.print(table)


@config_app.command("path")
def config_path() -> None:
    """Show configuration file locations."""
    table = Table(title="Configuration Paths", show_header=False)
    table.add_column("Config", style="bold")
    table.add_column("Path")
    table.add_column("Status")
    for label, path in [
        ("Defaults", CONFIG_DIR / "defaults.toml"),
        ("Override", _state["config_path"]),
        ("Keys", KEYS_FILE),
    ]:
        if path is None:
            continue
        found = "[green]found[/green]" if path.exists() else "[red]missing[/red]"
        table.add_row(label, str(path), found)
    console.print(table)


@app.command()
def keys(
    set_: list[str] = typer.Option(
        [], "--set", help="Save KEY=VALUE to ~/.companion/keys.env (repeatable)."
    ),
) -> None:
    """Show which credentials are configured, or save new ones."""
    if set_:
        updates: dict[str, str] = {}
        for item in set_:
            key, sep, value = item.partition("=")
            if not sep or not key.strip():
                console.print(f"[red]Expected KEY=VALUE, got:[/red] {item}")
                raise typer.Exit(1)
            updates[key.strip()] = value.strip()
        path = save_keys(updates)
        console.print(f"[green]Saved {len(updates)} key(s) to {path}[/green]")
        return

    configured = get_configured_keys()
    table = Table(title="Credentials")
    table.add_column("Variable", style="bold")
    table.add_column("Service")
    table.add_column("Used for")
    table.add_column("Status")
    for env_var, service, used_for in KNOWN_KEYS:
        found = "[green]set[/green]" if configured[env_var] else "[dim]not set[/dim]"
        table.add_row(env_var, service, used_for, found)
    console.print(table)


# ── companion serve ──────────────────────────────────────────────


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to listen on."),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
) -> None:
    """Serve the chat and deploy HTTP API.

    Requires: pip install code-companion[server]
    """
    try:
        import uvicorn

        from companion.server import create_app
    except ImportError:
        console.print(
            "[red]The HTTP server requires extra dependencies.[/red]\n"
            "Install with: [bold]pip install code-companion\\[server][/bold]"
        )
        raise typer.Exit(1) from None

    config = _load_config()
    console.print(
        Panel(
            f"[bold]URL:[/bold] http://{host}:{port}\n"
            f"[bold]Model:[/bold] {config.model.display_name}\n"
            f"[bold]Template:[/bold] {config.deploy.template.value}",
            title="[bold blue]Code Companion API[/bold blue]",
            border_style="blue",
        )
    )
    uvicorn.run(create_app(config), host=host, port=port, log_level="warning")


if __name__ == "__main__":
    app()
