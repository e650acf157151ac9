"""Typer CLI — ``codeclarity explain``, ``chat``, ``insight``, ``learn`` and ``validate``."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable
from pathlib import Path
from typing import TypeVar

import typer
from dotenv import load_dotenv
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from codeclarity.config import load_config
from codeclarity.schemas.analysis import CodeAnalysis
from codeclarity.schemas.config import AppConfig
from codeclarity.session import CodeClaritySession
from codeclarity.shared.errors import CodeClarityError, InputEmpty
from codeclarity.shared.learn_more import language_concept_links
from codeclarity.shared.llm_client import CompletionClient, DryRunClient, LLMGateway
from codeclarity.shared.progress import RequestProgress, ask_user, console

# Load .env file from the working directory (if it exists)
load_dotenv()

app = typer.Typer(
    name="codeclarity",
    help="CodeClarity — explain code snippets and chat with an AI programming mentor.",
    no_args_is_help=True,
)
logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONFIG_HELP = "Optional YAML file with provider settings."


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load(config: Path | None) -> AppConfig:
    try:
        return load_config(config)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Config validation failed:[/] {escape(str(exc))}")
        raise typer.Exit(code=1)


def _client(cfg: AppConfig, dry_run: bool) -> CompletionClient:
    if dry_run:
        console.print("[yellow]DRY-RUN mode — no API calls will be made.[/]\n")
        return DryRunClient()
    return LLMGateway(cfg.provider)


def _read_code(path: Path | None) -> str:
    if path is None or str(path) == "-":
        return sys.stdin.read()
    try:
        return path.read_text()
    except OSError as exc:
        console.print(f"[red]Could not read {escape(str(path))}:[/] {escape(exc.strerror or str(exc))}")
        raise typer.Exit(code=1)


def _fail(exc: CodeClarityError) -> typer.Exit:
    if exc.detail:
        logger.debug("%s: %s", type(exc).__name__, exc.detail)
    console.print(f"[red]Error:[/] {escape(exc.user_message)}")
    return typer.Exit(code=1)


def _print_analysis(analysis: CodeAnalysis) -> None:
    from codeclarity.output.markdown import render_analysis_markdown

    if analysis.parse_failed:
        console.print(f"[yellow]Warning:[/] {escape(analysis.warnings[0])}\n")
        console.print(escape(analysis.explanation_markdown))
        return
    console.print(Markdown(render_analysis_markdown(analysis)))


async def _with_spinner(label: str, request: Awaitable[T]) -> T:
    with RequestProgress(console) as progress:
        progress.start(label)
        try:
            result = await request
        except CodeClarityError as exc:
            progress.fail(label, exc.user_message)
            raise
        progress.finish(label)
    return result


@app.command()
def explain(
    code_file: Path = typer.Argument(None, help="File holding the code to explain (stdin if omitted or '-')."),
    config: Path = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use canned responses (no API calls)."),
    insight: bool = typer.Option(False, "--insight", help="Also request deeper insights on the code."),
    markdown_out: Path = typer.Option(None, "--markdown", help="Write the analysis as a Markdown report."),
    html_out: Path = typer.Option(None, "--html", help="Write the analysis as a self-contained HTML page."),
) -> None:
    """Explain a code snippet: analysis, review findings and learning links."""
    _setup_logging(verbose)
    cfg = _load(config)
    code = _read_code(code_file)
    session = CodeClaritySession(_client(cfg, dry_run))

    try:
        analysis, insight_text = asyncio.run(_run_explain(session, code, insight=insight))
    except CodeClarityError as exc:
        raise _fail(exc)

    _print_analysis(analysis)
    if insight_text:
        console.print("\n[bold]── Deeper Insight ──[/]\n")
        console.print(Markdown(insight_text))

    if markdown_out:
        from codeclarity.output.markdown import render_analysis_markdown

        markdown_out.write_text(render_analysis_markdown(analysis, code=code))
        console.print(f"[green]Markdown report written to:[/] {escape(str(markdown_out))}")
    if html_out:
        from codeclarity.output.html import render_analysis_html

        html_out.write_text(render_analysis_html(analysis, code=code, insight=insight_text))
        console.print(f"[green]HTML page written to:[/] {escape(str(html_out))}")


async def _run_explain(
    session: CodeClaritySession, code: str, *, insight: bool,
) -> tuple[CodeAnalysis, str | None]:
    analysis = await _with_spinner("Analyzing code", session.request_full_analysis(code))
    insight_text = None
    if insight:
        insight_text = await _with_spinner("Requesting deeper insights", session.request_insight())
    return analysis, insight_text


@app.command()
def chat(
    code_file: Path = typer.Argument(None, help="File holding the code to discuss (optional)."),
    message: list[str] = typer.Option(None, "--message", "-m", help="Send this message instead of prompting (repeatable)."),
    config: Path = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use canned responses (no API calls)."),
    transcript: Path = typer.Option(None, "--transcript", help="Write the conversation as Markdown when done."),
) -> None:
    """Chat with the mentor, optionally about a code file.

    Interactive unless ``--message`` is given.  Type /reset to start over
    and /quit to leave.
    """
    _setup_logging(verbose)
    cfg = _load(config)
    code = _read_code(code_file) if code_file else ""
    session = CodeClaritySession(_client(cfg, dry_run))

    try:
        asyncio.run(_run_chat(session, code, list(message or [])))
    except CodeClarityError as exc:
        raise _fail(exc)

    if transcript:
        from codeclarity.output.markdown import render_conversation_markdown

        transcript.write_text(render_conversation_markdown(session.conversation.turns))
        console.print(f"[green]Transcript written to:[/] {escape(str(transcript))}")


async def _run_chat(session: CodeClaritySession, code: str, scripted: list[str]) -> None:
    """Mentor loop. Scripted messages stop at the first error; interactive ones don't."""
    interactive = not scripted
    if interactive:
        console.print("[dim]Ask a question. /reset clears the conversation, /quit exits.[/]")

    while True:
        if scripted:
            text = scripted.pop(0)
        elif interactive:
            text = await ask_user("You")
            if text is None:
                break
        else:
            break

        command = text.strip().lower()
        if command in ("/quit", "/exit"):
            break
        if command == "/reset":
            session.reset_conversation()
            console.print("[dim]Conversation cleared.[/]")
            continue

        try:
            reply = await _with_spinner(
                "Mentor is thinking", session.send_chat_message(text, code_context=code or None),
            )
        except InputEmpty as exc:
            console.print(f"[yellow]{escape(exc.user_message)}[/]")
            continue
        except CodeClarityError as exc:
            if not interactive:
                raise
            console.print(f"[red]Error:[/] {escape(exc.user_message)}")
            continue

        console.print("[bold]Mentor:[/]")
        console.print(Markdown(reply))


@app.command()
def insight(
    code_file: Path = typer.Argument(None, help="File holding the code (stdin if omitted or '-')."),
    config: Path = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use canned responses (no API calls)."),
) -> None:
    """Ask for key concepts, challenges and design patterns behind a snippet."""
    _setup_logging(verbose)
    cfg = _load(config)
    code = _read_code(code_file)
    session = CodeClaritySession(_client(cfg, dry_run))

    try:
        text = asyncio.run(_with_spinner("Requesting deeper insights", session.request_insight(code)))
    except CodeClarityError as exc:
        raise _fail(exc)
    console.print(Markdown(text))


@app.command()
def learn(
    language: str = typer.Argument(..., help="Language to find tutorials for, e.g. Python."),
) -> None:
    """List tutorial searches for the core concepts of a language."""
    links = language_concept_links(language)
    if not links:
        console.print("[yellow]Name a language to get learning links.[/]")
        raise typer.Exit(code=1)

    table = Table(title=f"Learn {escape(language.strip())}")
    table.add_column("Topic")
    table.add_column("Search")
    for link in links:
        table.add_row(escape(link.title), escape(link.url))
    console.print(table)


@app.command()
def validate(
    config: Path = typer.Option(None, "--config", "-c", help=_CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Check provider configuration. Reports only whether settings are set."""
    _setup_logging(verbose)
    cfg = _load(config)
    settings = cfg.provider

    console.print(f"  Provider:  {settings.provider}")
    console.print(f"  Base URL:  {escape(settings.base_url)}")
    if settings.provider == "openai":
        console.print(f"  Model:     {escape(settings.model)}")
    console.print(f"  Retries:   {settings.max_retries}")

    status = settings.setting_status()
    for name, ok in status.items():
        state = "[green]set[/]" if ok else "[red]missing[/]"
        console.print(f"  {name}: {state}")

    if not all(status.values()):
        console.print("\n[red]Configuration incomplete.[/] Set the missing values in the environment or a .env file.")
        raise typer.Exit(code=1)
    console.print("\n[green]Config is valid![/]")
