import asyncio
import os
import uuid
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from argus.config import ArgusSettings, load_settings
from argus.core.constants import channel_for
from argus.core.exceptions import ArgusError
from argus.events.bus import EventBus
from argus.events.models import EventType, TaskEvent
from argus.llm.client import ChatClient, OpenRouterChatClient
from argus.llm.context import ContextStore
from argus.llm.conversation import ConversationDriver
from argus.logging import configure_logging
from argus.orchestration.orchestrator import AgentOrchestrator
from argus.orchestration.posting import FindingPoster, GitHubReviewCommentClient
from argus.orchestration.review_loop import ReviewLoop
from argus.orchestration.types import WorkflowContext
from argus.orchestration.workflow import WorkflowEngine
from argus.tools.definitions import PromptMode, get_definitions
from argus.tools.executor import ToolExecutor
from argus.tools.registry import ToolRegistry
from argus.tools.workspace import LocalWorkspace


app = typer.Typer(help="Argus code review agent CLI")
console = Console()

CLI_USER_ID = 0


@app.callback()
def main_callback() -> None:
    """
    Argus: a tool-using LLM code reviewer.
    """
    configure_logging()


def _safe_load_settings() -> ArgusSettings:
    """Load settings with error handling.

    Raises:
        typer.Exit: If settings fail to load.
    """
    try:
        return load_settings()
    except Exception as e:
        typer.echo(f"Error loading settings: {e}", err=True)
        raise typer.Exit(code=1) from None


def build_orchestrator(
    settings: ArgusSettings,
    bus: EventBus,
    client: ChatClient | None = None,
) -> AgentOrchestrator:
    """Wire the tool, conversation, review and workflow layers.

    Args:
        settings: Runtime settings.
        bus: Event bus shared by every layer.
        client: Chat client; an OpenRouter client is built when omitted.

    Returns:
        An orchestrator ready to run reviews.
    """
    executor = ToolExecutor(ToolRegistry())
    store = ContextStore(settings.max_contexts, settings.max_messages, settings.max_tool_calls)
    driver = ConversationDriver(
        client or OpenRouterChatClient(settings.model, settings.api_key_env, settings.llm_timeout_seconds),
        executor,
        store,
        bus,
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )
    loop = ReviewLoop(
        driver,
        store,
        bus,
        FindingPoster(GitHubReviewCommentClient(settings.github_api_url)),
        max_loops=settings.max_loops,
        brevity_threshold=settings.brevity_threshold,
        compaction_threshold=settings.compaction_token_threshold,
        keep_recent=settings.compaction_keep_recent,
        min_messages=settings.compaction_min_messages,
    )
    return AgentOrchestrator(WorkflowEngine(executor, bus, review_runner=loop.run_for_workflow))


def _print_event(event: TaskEvent) -> None:
    match event.type:
        case EventType.ASSISTANT_DELTA:
            console.print(Markdown(event.data.get("text", "")))
        case EventType.TOOL_CALL_STARTED:
            console.print(f"[yellow]⚡ {event.data.get('name')}[/yellow] {event.data.get('params')}")
        case EventType.CODE_SMELLS_ACCUMULATED:
            console.print(f"[green]+{event.data.get('newIssues')} findings[/green] (total {event.data.get('totalIssues')})")
        case EventType.REVIEW_ERROR:
            console.print(f"[red]Review error:[/red] {event.data.get('error')}")


@app.command()
def tools(
    mode: Annotated[PromptMode, typer.Option("--mode", "-m", help="Prompt mode")] = PromptMode.CODE_REVIEW,
) -> None:
    """List the tools offered to the model."""
    table = Table(title=f"Tools ({mode})")
    table.add_column("Name", style="cyan")
    table.add_column("Parameters")
    table.add_column("Description")
    for definition in get_definitions(mode):
        params = ", ".join(p.name if p.required else f"[{p.name}]" for p in definition.parameters)
        table.add_row(str(definition.name), params, (definition.description.splitlines() or [""])[0])
    console.print(table)


@app.command()
def review(
    path: Annotated[Path, typer.Argument(help="Workspace to review", exists=True, file_okay=False)],
    owner: Annotated[str | None, typer.Option(help="Repository owner, for posting findings")] = None,
    repo: Annotated[str | None, typer.Option(help="Repository name, for posting findings")] = None,
    pr_number: Annotated[int | None, typer.Option("--pr", help="Pull request number")] = None,
    changed: Annotated[list[str] | None, typer.Option("--changed", help="Changed file, repeatable")] = None,
    model: Annotated[str | None, typer.Option("--model", help="Override the model")] = None,
    max_loops: Annotated[int | None, typer.Option("--max-loops", min=1, help="Override the loop ceiling")] = None,
    post: Annotated[bool, typer.Option("--post", help="Post findings using GITHUB_TOKEN")] = False,
    log_level: Annotated[str, typer.Option("--log-level", help="Log level")] = "WARNING",
) -> None:
    """Review a local workspace and print the aggregated result."""
    configure_logging(log_level)
    settings = _safe_load_settings()
    overrides = {k: v for k, v in {"model": model, "max_loops": max_loops}.items() if v is not None}
    if overrides:
        settings = settings.model_copy(update=overrides)

    access_token = os.environ.get("GITHUB_TOKEN") if post else None
    if post and not (access_token and owner and repo and pr_number is not None):
        typer.echo("Error: --post needs GITHUB_TOKEN, --owner, --repo and --pr.", err=True)
        raise typer.Exit(code=1)

    task_id = uuid.uuid4().hex[:12]
    bus = EventBus()
    bus.subscribe(channel_for(task_id), _print_event)
    orchestrator = build_orchestrator(settings, bus)
    context = WorkflowContext(
        workspace_path=str(path.resolve()),
        user_id=CLI_USER_ID,
        task_id=task_id,
        owner=owner,
        repo=repo,
        pr_number=pr_number,
        workspace=LocalWorkspace(path),
        access_token=access_token,
        metadata={"changed_files": changed or []},
    )

    try:
        result = asyncio.run(orchestrator.execute_code_review(CLI_USER_ID, context))
    except ArgusError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    console.print(Markdown(orchestrator.aggregate(result).summary))
    if not result.success:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
