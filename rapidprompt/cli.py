# rapidprompt/cli.py

from pathlib import Path
from typing import Optional

import typer
from loguru import logger

# --- Setup logging early ---
from .services.logging import setup_logging
# Logging setup is deferred until callback

from .config.loader import get_config, load_system_prompt
from .core.errors import RapidPromptError
from .core.export import save_chunk_file, write_text_file
from .core.fs_scanner import _FileScannerCore
from .core.sources import LocalSources
from .core.token_counter import count_tokens
from .core.tree import render_ascii_tree
from .core.workbench import Workbench
from .extractors.spreadsheet import inspect_tabular_source
from . import __version__

# --- Typer App ---
app = typer.Typer(help="Rapid Prompt CLI - Assemble prompt documents from saved sessions headlessly.")

def version_callback(value: bool):
    if value:
        print(f"Rapid Prompt CLI Version: {__version__}")
        raise typer.Exit()

@app.callback()
def main_options(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    no_log_file: bool = typer.Option(False, "--no-log-file", help="Log to the console only."),
    version: Optional[bool] = typer.Option(None, "--version", callback=version_callback, is_eager=True, help="Show version and exit."),
):
    """ Main callback to set up logging """
    log_level = "DEBUG" if verbose else "INFO"
    # Configure logging here, after flags are parsed
    setup_logging(level=log_level, verbose=verbose, log_to_file=not no_log_file)
    logger.info(f"Log level set to: {log_level}")
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose


def _fail(error: Exception) -> None:
    message = error.message if isinstance(error, RapidPromptError) else str(error)
    logger.error(message)
    raise typer.Exit(code=1)


def _restore_workbench(session: Path, root: Optional[Path]) -> Workbench:
    config = get_config()
    workbench = Workbench(LocalSources(config), config)
    workbench.set_system_instructions(load_system_prompt())
    try:
        workbench.import_session(session, str(root) if root else None)
    except RapidPromptError as e:
        _fail(e)
    return workbench


@app.command()
def build(
    session: Path = typer.Argument(..., help="Session file (.rag.json) to restore.", exists=True, dir_okay=False, readable=True, resolve_path=True),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Re-anchor the session at this folder instead of its saved root.", exists=True, file_okay=False, resolve_path=True),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the document here instead of stdout.", resolve_path=True),
):
    """
    Restores a session (rescan, re-extract, cursor) and renders the exact document it would copy.
    """
    workbench = _restore_workbench(session, root)
    try:
        document = workbench.render_document()
    except RapidPromptError as e:
        _fail(e)
    tokens = workbench.count_document(document)

    if output is None:
        typer.echo(document, nl=False)
    else:
        try:
            write_text_file(output, document)
        except RapidPromptError as e:
            _fail(e)
        logger.success(f"Document written to: {output}")
    logger.info(f"Token count: {tokens}")


@app.command()
def chunks(
    session: Path = typer.Argument(..., help="Session file (.rag.json) in spreadsheet or block mode.", exists=True, dir_okay=False, readable=True, resolve_path=True),
    out_dir: Path = typer.Argument(..., help="Directory that receives one document per unit.", file_okay=False, resolve_path=True),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Re-anchor the session at this folder.", exists=True, file_okay=False, resolve_path=True),
    ext: str = typer.Option("md", "--ext", help="File extension for the saved documents."),
):
    """
    Saves one document per unit, named after the unit id.
    """
    workbench = _restore_workbench(session, root)
    if workbench.state.mode == "folder":
        logger.error("Session is in folder mode; there are no units to split.")
        raise typer.Exit(code=1)
    if not len(workbench.units):
        logger.warning("Session produced no units.")
        raise typer.Exit(code=1)

    saved = 0
    for unit, document in workbench.iter_unit_documents():
        try:
            path = save_chunk_file(out_dir, unit.id, document, ext=ext)
        except RapidPromptError as e:
            _fail(e)
        logger.debug(f"Saved unit {unit.id} -> {path}")
        saved += 1
    logger.success(f"Saved {saved} documents to: {out_dir}")
    typer.echo(f"{saved} chunks written to {out_dir}")


@app.command()
def tree(
    directory: Path = typer.Argument(..., help="Folder to scan.", exists=True, file_okay=False, readable=True, resolve_path=True),
    depth: Optional[int] = typer.Option(None, "--depth", help="Maximum depth below the root."),
    entries: Optional[int] = typer.Option(None, "--entries", help="Maximum number of entries (at least 50)."),
    no_root_path: bool = typer.Option(False, "--no-root-path", help="Print only the root name on the first line."),
    no_gitignore: bool = typer.Option(False, "--no-gitignore", help="Do not apply the root .gitignore."),
):
    """
    Prints the ASCII tree used in folder-mode documents.
    """
    config = get_config()
    scanner = _FileScannerCore(root_path=directory, ignore_patterns=config.ignore_patterns, skip_hidden=config.skip_hidden,
                               respect_gitignore=config.respect_gitignore and not no_gitignore)
    try:
        root_node = scanner.scan_directory_sync()
    except RapidPromptError as e:
        _fail(e)
    typer.echo(render_ascii_tree(root_node,
                                 depth_limit=depth if depth is not None else config.tree_depth_limit,
                                 entry_limit=entries if entries is not None else config.tree_entry_limit,
                                 show_root_path=config.tree_show_root_path and not no_root_path))


@app.command()
def tokens(
    file: Path = typer.Argument(..., help="Text file to count.", exists=True, dir_okay=False, readable=True, resolve_path=True),
    encoding: Optional[str] = typer.Option(None, "--encoding", help="tiktoken encoding name."),
):
    """
    Prints the token count of a file's text.
    """
    text = file.read_text(encoding="utf-8", errors="replace")
    typer.echo(str(count_tokens(text, encoding or get_config().token_encoding)))


@app.command()
def inspect(
    spreadsheet: Path = typer.Argument(..., help="Workbook (.xlsx/.xlsm) or delimited file (.csv/.tsv).", exists=True, dir_okay=False, readable=True, resolve_path=True),
):
    """
    Lists each sheet with the columns detected in its header row.
    """
    try:
        inspection = inspect_tabular_source(str(spreadsheet))
    except RapidPromptError as e:
        _fail(e)
    for sheet in inspection.sheets:
        typer.echo(f"{sheet.name}: {', '.join(sheet.columns) if sheet.columns else '(no columns)'}")


if __name__ == "__main__":
    app()
