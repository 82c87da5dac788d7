from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from typing import Any

import click
import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .agents import AgentRegistry
from .cli_shared import OpError, ServerEventError, UsageError, _print_json
from .client import AgentCoreClient
from .config import _bootstrap_env, format_config_for_display, load_config, validate_config
from .memory import MemoryService, create_memory_service
from .streaming import ContentBlockDeltaEvent, ContentBlockStartEvent, ServerErrorEvent

_ERROR_CONSOLE = Console(stderr=True)
_CONSOLE = Console()


def _rich_error(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[bold red]error:[/bold red] {escape(msg)}")


def _rich_warning(msg: str) -> None:
    _ERROR_CONSOLE.print(f"[yellow]warning:[/yellow] {escape(msg)}")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"agentcore-chat {__version__}")
        raise typer.Exit(code=0)


def _configure_logging(*, quiet: bool) -> None:
    logging.basicConfig(
        level=logging.WARNING if quiet else logging.INFO,
        stream=sys.stderr,
        format="%(levelname)s %(name)s %(message)s",
        force=True,
    )


def _make_client() -> AgentCoreClient:
    return AgentCoreClient(load_config())


def _make_memory_service() -> MemoryService:
    return create_memory_service()


def _make_registry() -> AgentRegistry:
    return AgentRegistry()


app = typer.Typer(
    name="agentcore-chat",
    help="Talk to an AgentCore agent and inspect its conversation memory.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def app_callback(
    ctx: typer.Context,
    quiet: bool = typer.Option(False, "--quiet", help="Reduce stderr logging"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    del version
    _configure_logging(quiet=quiet)
    ctx.obj = {"quiet": quiet}


@app.command("ping", help="Check /ping and the service root of the configured endpoint.")
def ping(
    json_output: bool = typer.Option(False, "--json", help="Emit the raw result as JSON"),
) -> None:
    client = _make_client()
    result = asyncio.run(client.test_connection())
    if json_output:
        _print_json(result, pretty=False)
        return
    _CONSOLE.print(
        f"[green]ok[/green] {escape(client.get_config().endpoint)} "
        f"({result['connectionTime']}ms)"
    )
    _print_json({"ping": result["ping"], "serviceInfo": result["serviceInfo"]}, pretty=True)


async def _stream_invocation(client: AgentCoreClient, prompt: str, session_id: str | None) -> None:
    async with contextlib.aclosing(client.invoke_stream(prompt, session_id)) as events:
        async for event in events:
            if isinstance(event, ContentBlockDeltaEvent) and event.text:
                sys.stdout.write(event.text)
                sys.stdout.flush()
            elif isinstance(event, ContentBlockStartEvent) and event.tool_name:
                _ERROR_CONSOLE.print(f"[cyan]tool:[/cyan] {escape(event.tool_name)}")
            elif isinstance(event, ServerErrorEvent):
                raise ServerEventError(event.message, request_id=event.request_id)
    sys.stdout.write("\n")


@app.command("invoke", help="Send one prompt to the agent.")
def invoke(
    prompt: str = typer.Argument(..., help="Prompt text"),
    session_id: str | None = typer.Option(None, "--session-id", help="Conversation session id (default: new session)"),
    json_output: bool = typer.Option(False, "--json", help="Emit the full response as JSON"),
    stream: bool = typer.Option(False, "--stream", help="Print text as it arrives"),
) -> None:
    if stream and json_output:
        raise UsageError("--stream and --json cannot be combined")
    client = _make_client()
    if stream:
        asyncio.run(_stream_invocation(client, prompt, session_id))
        return
    resp = asyncio.run(client.invoke(prompt, session_id))
    if json_output:
        _print_json(resp.to_dict(), pretty=True)
        return
    typer.echo(resp.text())


@app.command("config", help="Show the resolved configuration (secrets masked).")
def config(
    json_output: bool = typer.Option(False, "--json", help="Emit configuration and problems as JSON"),
) -> None:
    cfg = load_config()
    display = format_config_for_display(cfg)
    problems = validate_config(cfg)
    if json_output:
        _print_json({"config": display, "problems": problems}, pretty=False)
        return
    _print_json(display, pretty=True)
    for problem in problems:
        _rich_warning(problem)


@app.command("whoami", help="Show the token claims of the configured identity.")
def whoami() -> None:
    claims = asyncio.run(_make_client().current_identity())
    if claims is None:
        raise UsageError("no authentication configured for this endpoint")
    _print_json(claims, pretty=True)


@app.command("sessions", help="List conversation sessions of an actor.")
def sessions(
    actor_id: str = typer.Argument(..., help="Actor (user) id"),
    json_output: bool = typer.Option(False, "--json", help="Emit sessions as JSON"),
) -> None:
    found = _make_memory_service().list_sessions(actor_id)
    if json_output:
        _print_json([s.to_dict() for s in found], pretty=False)
        return
    if not found:
        _CONSOLE.print("no sessions")
        return
    table = Table("sessionId", "createdAt")
    for s in found:
        table.add_row(s.session_id, s.created_at)
    _CONSOLE.print(table)


def _render_contents(contents: list[dict[str, Any]]) -> str:
    lines: list[str] = []
    for c in contents:
        kind = c.get("type")
        if kind == "text":
            lines.append(str(c.get("text") or ""))
        elif kind == "toolUse":
            lines.append(f"[tool use] {c['toolUse']['name']}")
        elif kind == "toolResult":
            marker = "tool error" if c["toolResult"]["isError"] else "tool result"
            lines.append(f"[{marker}] {c['toolResult']['toolUseId']}")
        elif kind == "image":
            lines.append(f"[image] {c['image']['mimeType']}")
    return "\n".join(lines)


@app.command("history", help="Show the reconstructed conversation of one session.")
def history(
    actor_id: str = typer.Argument(..., help="Actor (user) id"),
    session_id: str = typer.Argument(..., help="Session id"),
    json_output: bool = typer.Option(False, "--json", help="Emit messages as JSON"),
) -> None:
    messages = _make_memory_service().get_session_events(actor_id, session_id)
    if json_output:
        _print_json([m.to_dict() for m in messages], pretty=False)
        return
    for m in messages:
        style = "bold green" if m.type == "user" else "bold blue"
        _CONSOLE.print(f"[{style}]{m.type}[/{style}] [dim]{escape(m.timestamp)}[/dim]")
        _CONSOLE.print(escape(_render_contents([c.to_dict() for c in m.contents])), highlight=False)


@app.command("delete-session", help="Delete every event of one session.")
def delete_session(
    actor_id: str = typer.Argument(..., help="Actor (user) id"),
    session_id: str = typer.Argument(..., help="Session id"),
) -> None:
    result = _make_memory_service().delete_session(actor_id, session_id)
    _print_json(result.to_dict(), pretty=False)
    if result.failed:
        _rich_warning(f"{result.failed} event(s) could not be deleted")


@app.command("agents", help="List agents known to the backend API.")
def agents() -> None:
    _print_json([a.to_dict() for a in _make_registry().list_agents()], pretty=False)


@app.command("agent", help="Show one agent definition from the backend API.")
def agent(agent_id: str = typer.Argument(..., help="Agent id")) -> None:
    definition = _make_registry().get_agent_definition(agent_id)
    if definition is None:
        raise OpError(f"agent not found: {agent_id}")
    _print_json(definition.to_dict(), pretty=True)


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    try:
        _bootstrap_env()
        result = app(args=argv, prog_name="agentcore-chat", standalone_mode=False)
        if result is None:
            return 0
        return int(result)
    except typer.Exit as e:
        return int(e.exit_code)
    except click.ClickException as e:
        _rich_error(e.format_message())
        return int(e.exit_code)
    except UsageError as e:
        _rich_error(str(e))
        return 2
    except OpError as e:
        _rich_error(str(e))
        return 1
    except (ClientError, BotoCoreError) as e:
        _rich_error(f"aws request failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
