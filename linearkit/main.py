"""Main entry point for the linearkit command line.

Sets up the Typer CLI application and builds a Toolkit per command
(Composition Root). Commands are thin: they delegate to the toolkit and
render results with ConsoleDisplay.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Coroutine, Dict, Optional

import typer
from typing_extensions import Annotated

from linearkit.core.module_loader import ModuleLoader
from linearkit.core.session_manager import PERSISTENCE_DISK, SessionConfig, SessionManager
from linearkit.core.toolkit import Toolkit, register_default_modules
from linearkit.domain.errors import LinearKitError
from linearkit.domain.models.graphql import GraphQLRequest
from linearkit.infrastructure.cli.display import ConsoleDisplay
from linearkit.infrastructure.config.settings import build_toolkit_config, get_config, load_configuration
from linearkit.infrastructure.monitoring.logger_setup import setup_logging

logger = logging.getLogger(__name__)

# Console logs go to stdout alongside command output
DEFAULT_CLI_LOG_LEVEL = "WARNING"

app = typer.Typer(
    name="linearkit",
    help="Resilient GraphQL toolkit for issue-tracker automation.",
    add_completion=False,
)

display = ConsoleDisplay()


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs a coroutine from a sync Typer command, reporting toolkit errors."""
    try:
        return asyncio.run(coro)
    except LinearKitError as e:
        logger.error(f"Command failed: {e}")
        display.display_error(f"{type(e).__name__}: {e}")
        raise typer.Exit(code=1)


def _read_document(query: str) -> str:
    if query.startswith("@"):
        return Path(query[1:]).read_text(encoding="utf-8")
    return query


def _parse_variables(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        variables = json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--variables is not valid JSON: {e}")
    if not isinstance(variables, dict):
        raise typer.BadParameter("--variables must be a JSON object")
    return variables


@app.callback()
def main_callback(
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="debug, info, warning or error.")] = None,
):
    """Configure logging before any command runs."""
    load_configuration()
    level = log_level or str(get_config("LOG_LEVEL", DEFAULT_CLI_LOG_LEVEL))
    setup_logging(log_level=level, log_file=get_config("LOG_FILE"))


@app.command()
def query(
    document: Annotated[str, typer.Argument(help="GraphQL document, or @path to read it from a file.")],
    variables: Annotated[Optional[str], typer.Option("--variables", "-v", help="Variables as a JSON object.")] = None,
    cache: Annotated[bool, typer.Option("--cache", help="Serve from / store in the response cache.")] = False,
    session_id: Annotated[Optional[str], typer.Option("--session", help="Record into this session id.")] = None,
    show_stats: Annotated[bool, typer.Option("--stats", help="Print session operation stats afterwards.")] = False,
):
    """Run one GraphQL document through the resilient executor."""
    request = GraphQLRequest(query=_read_document(document), variables=_parse_variables(variables))

    async def _run() -> Any:
        async with Toolkit(build_toolkit_config(), session_id=session_id) as toolkit:
            if session_id:
                await toolkit.session.restore_state(session_id)
            data = await toolkit.executor.query(request, use_cache=cache)
            return data, toolkit.session.get_operation_stats(), toolkit.session.get_recent_operations(limit=10)

    data, stats, recent = run_async(_run())
    display.display_data(data, title=request.operation_name)
    if show_stats:
        display.display_stats(stats, recent)


@app.command(name="validate-modules")
def validate_modules():
    """Check the bundled module graph for cycles and unknown dependencies."""
    loader = ModuleLoader()
    register_default_modules(loader)
    report = loader.validate_dependencies()
    display.display_validation(report, loader.get_dependency_graph())
    if not report["valid"]:
        raise typer.Exit(code=1)


@app.command()
def session(
    session_id: Annotated[str, typer.Argument(help="Id of a session persisted on disk.")],
    directory: Annotated[Path, typer.Option("--dir", help="Session directory.")] = Path(".linear"),
):
    """Show a persisted session: ids, timestamps and stored context."""
    manager = SessionManager(SessionConfig(persistence_type=PERSISTENCE_DISK, persistence_dir=directory))
    found = run_async(manager.restore_state(session_id))
    if not found:
        display.display_error(f"Session not found: {session_id}")
        raise typer.Exit(code=1)
    summary = manager.get_summary()
    display.display_data(
        {
            "session_id": summary["session_id"],
            "created_at": summary["created_at"],
            "last_activity": summary["last_activity"],
            "context": manager.get_all_context(),
        },
        title="Session",
    )


def cli_entry_point():
    """Function called by the console script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
