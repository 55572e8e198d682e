import json
import logging
import os
import sys

from mcp.server.fastmcp import FastMCP

from .config import Settings, load_settings
from .database import NotesDB
from .fingerprint import read_lines, split_lines
from .models import LineRange
from .relocator import NoteRelocator, compute_initial_anchor
from .serializer import NotesFormatError, export_notes as do_export_notes, import_notes as do_import_notes
from .symbols import TreeSitterLocator

# CRITICAL: Never write to stdout in MCP mode: stdout is the JSON-RPC channel.
logging.basicConfig(stream=sys.stderr, level=logging.INFO)
logger = logging.getLogger("codenotes")

mcp = FastMCP("CodeNotes")

settings: Settings | None = None
db: NotesDB | None = None
relocator: NoteRelocator | None = None


def init(new_settings: Settings) -> None:
    """Connect the database and build the relocator. Called once before serving."""
    global settings, db, relocator

    logging.getLogger("codenotes").setLevel(new_settings.log_level)
    logger.info(f"DB path: {new_settings.db_path} (source: {new_settings.db_path_source})")
    logger.info(f"Workspace root: {new_settings.workspace_root}")

    if db is not None:
        db.close()
    try:
        db = NotesDB(new_settings.db_path)
        db.connect()
    except Exception as e:
        logger.error(f"CRITICAL: Failed to connect to database: {e}", exc_info=True)
        raise

    settings = new_settings
    relocator = NoteRelocator(
        db,
        TreeSitterLocator(),
        context_radius=settings.context_radius,
        search_radius=settings.search_radius,
    )


# ============================================================================
# Path helpers
# ============================================================================

def _resolve_path(path: str) -> str:
    """Absolute path. Relative paths go relative to the workspace root, not cwd."""
    if os.path.isabs(path):
        return path
    return os.path.join(settings.workspace_root, path)


def _to_rel_path(path: str) -> str:
    """Forward-slash path relative to the workspace root. This is what gets stored in the DB."""
    abs_path = _resolve_path(path)
    try:
        rel = os.path.relpath(abs_path, settings.workspace_root)
    except ValueError:
        rel = abs_path  # Different drive on Windows
    return rel.replace("\\", "/")


def load_file_lines(path: str) -> list[str]:
    """Current content of a workspace file, split into lines."""
    return read_lines(_resolve_path(path))


def _error(message: str) -> str:
    return json.dumps({"status": "error", "message": message})


# ============================================================================
# Tools
# ============================================================================

@mcp.tool()
def add_note(
    file_path: str,
    start_line: int,
    end_line: int,
    note_text: str,
    symbol_name: str = None,
    author_name: str = "Anonymous",
    author_email: str = None,
) -> str:
    """Attach a note to a line range of a source file.

    Args:
        file_path:   File to annotate (absolute or relative to the workspace root).
        start_line:  First annotated line, zero-based.
        end_line:    Last annotated line, zero-based and inclusive.
        note_text:   The note itself.
        symbol_name: Optional enclosing function/class name used to find the code again
                     if it moves too far. Looked up automatically when omitted.

    Returns {"status":"ok", "note": {...}}.
    """
    logger.debug(f"add_note() file={file_path} lines={start_line}-{end_line}")
    rel_path = _to_rel_path(file_path)
    try:
        lines = load_file_lines(rel_path)
    except OSError as e:
        return _error(f"Cannot read file: {e}")

    note = relocator.add_note(
        rel_path,
        lines,
        LineRange(start_line, end_line),
        note_text,
        symbol_name=symbol_name,
        author_name=author_name,
        author_email=author_email,
    )
    return json.dumps({"status": "ok", "note": note.to_dict()})


@mcp.tool()
def list_notes(file_path: str = None) -> str:
    """List stored notes, optionally only those on one file.

    Returns {"status":"ok", "count", "notes": [...]}. Each note carries its current
    range and an is_outdated flag set when the annotated code changed.
    """
    if file_path:
        notes = db.get_notes_for_file(_to_rel_path(file_path))
    else:
        notes = db.list_notes()
    return json.dumps({
        "status": "ok",
        "count": len(notes),
        "notes": [n.to_dict() for n in notes],
    })


@mcp.tool()
def edit_note(note_id: str, note_text: str, reanchor: bool = False) -> str:
    """Replace a note's text.

    Args:
        note_id:   Id returned by add_note() or list_notes().
        note_text: New text.
        reanchor:  True to accept the code as it is now: the note's fingerprints are
                   recomputed over its current range and the outdated flag clears.
    """
    note = db.get_note(note_id)
    if note is None:
        return _error(f"Note not found: {note_id}")

    if not reanchor:
        db.update_note_text(note_id, note_text)
        return json.dumps({"status": "ok", "note_id": note_id, "reanchored": False})

    try:
        lines = load_file_lines(note.file_path)
    except OSError as e:
        return _error(f"Cannot read file: {e}")

    anchor, fingerprint = compute_initial_anchor(
        lines, note.range, note.anchor.symbol_name, relocator.context_radius
    )
    db.update_note_text(note_id, note_text, anchor=anchor, content_hash=fingerprint.hash)
    return json.dumps({
        "status": "ok",
        "note_id": note_id,
        "reanchored": True,
        "range": anchor.range.to_dict(),
    })


@mcp.tool()
def delete_note(note_id: str) -> str:
    """Delete a note by id."""
    if not db.delete_note(note_id):
        return _error(f"Note not found: {note_id}")
    return json.dumps({"status": "ok", "deleted": note_id})


@mcp.tool()
def file_changed(file_path: str, content: str = None) -> str:
    """Tell CodeNotes a file was saved so its notes follow the code.

    Args:
        file_path: The saved file.
        content:   Optional new content; read from disk when omitted.

    Returns JSON: {file, notes_checked, changed: [{note_id, resolution, outdated,
    old_range, new_range}], outdated_count, persisted}.
    resolution is one of unchanged, relocatedByHash, relocatedBySymbol, unresolved.
    """
    rel_path = _to_rel_path(file_path)
    if content is not None:
        lines = split_lines(content)
    else:
        try:
            lines = load_file_lines(rel_path)
        except OSError as e:
            return _error(f"Cannot read file: {e}")

    report = relocator.on_file_changed(rel_path, lines)
    return json.dumps({"status": "ok", **report.to_dict()})


@mcp.tool()
def check(file_path: str = None) -> str:
    """Relocate notes and report which ones are outdated.

    Args:
        file_path: Optional. Specific file to check. Omit to check every file with notes.

    Returns JSON: {files_checked, outdated_count, outdated_notes: [...], relocated: [...]}
    """
    logger.debug(f"check() called, file_path={file_path}")

    if file_path:
        rel_path = _to_rel_path(file_path)
        try:
            reports = [relocator.on_file_changed(rel_path, load_file_lines(rel_path))]
        except OSError as e:
            return _error(f"Cannot read file: {e}")
    else:
        reports = relocator.check_all(load_file_lines)

    outdated = [
        {"file": r.file_path, **c.to_dict()} for r in reports for c in r.outdated
    ]
    relocated = [
        {"file": r.file_path, **c.to_dict()}
        for r in reports
        for c in r.changes
        if c.resolution.relocated
    ]
    return json.dumps({
        "status": "ok",
        "files_checked": [r.file_path for r in reports],
        "outdated_count": len(outdated),
        "outdated_notes": outdated,
        "relocated": relocated,
        "tip": "Review outdated notes and call edit_note(reanchor=True) once they are accurate again." if outdated else "All notes are current.",
    })


@mcp.tool()
def export_notes(output_path: str = ".codenotes") -> str:
    """Write all notes to a .codenotes JSON document (relative to the workspace root)."""
    abs_path = _resolve_path(output_path)
    try:
        count = do_export_notes(db, abs_path)
    except OSError as e:
        return _error(f"Export failed: {e}")
    logger.info(f"Exported {count} notes to {abs_path}")
    return json.dumps({"status": "ok", "path": _to_rel_path(abs_path), "notes_exported": count})


@mcp.tool()
def import_notes(input_path: str = ".codenotes") -> str:
    """Load notes from a .codenotes JSON document, replacing notes with the same id."""
    abs_path = _resolve_path(input_path)
    try:
        count = do_import_notes(db, abs_path)
    except (OSError, NotesFormatError) as e:
        logger.warning(f"Import from {abs_path} failed: {e}")
        return _error(f"Import failed: {e}")
    logger.info(f"Imported {count} notes from {abs_path}")
    return json.dumps({"status": "ok", "path": _to_rel_path(abs_path), "notes_imported": count})


def debug_info() -> str:
    """Internal diagnostic, not exposed as an MCP tool. Call from CLI: codenotes --cli debug"""
    try:
        note_count = len(db.list_notes())
    except Exception as e:
        note_count = f"error: {e}"

    return json.dumps({
        "status": "ok",
        "workspace_root": settings.workspace_root,
        "db_path": settings.db_path,
        "db_exists": os.path.exists(settings.db_path),
        "note_count": note_count,
        "context_radius": settings.context_radius,
        "search_radius": settings.search_radius,
        "cwd": os.getcwd(),
    })


# ============================================================================
# Entry point
# ============================================================================

def main(argv: list[str] | None = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    init(load_settings(argv))

    if "--cli" in argv:
        args = argv[argv.index("--cli") + 1:]
        if "--db-path" in args:
            idx = args.index("--db-path")
            del args[idx:idx + 2]
        if not args:
            print(json.dumps({"error": "Usage: codenotes --cli <command> [args...]"}))
            sys.exit(1)
        command, rest = args[0], args[1:]
        if command == "check":
            print(check(rest[0] if rest else None))
        elif command == "export":
            print(export_notes(*rest[:1]))
        elif command == "import":
            print(import_notes(*rest[:1]))
        elif command == "debug":
            print(debug_info())
        else:
            print(json.dumps({"error": f"Unknown command: {command}"}))
            sys.exit(1)
    else:
        try:
            logger.info("Starting MCP stdio transport")
            mcp.run(transport="stdio")
        except Exception as e:
            logger.error(f"Fatal error: {e}", exc_info=True)
            sys.exit(1)


if __name__ == "__main__":
    main()
