import logging
import os
from dataclasses import dataclass

from .fingerprint import DEFAULT_CONTEXT_RADIUS, DEFAULT_SEARCH_RADIUS

logger = logging.getLogger("codenotes.config")

DEFAULT_DB_PATH = ".vscode/codenotes.db"


@dataclass(frozen=True)
class Settings:
    db_path: str
    db_path_source: str
    workspace_root: str
    context_radius: int = DEFAULT_CONTEXT_RADIUS
    search_radius: int = DEFAULT_SEARCH_RADIUS
    log_level: str = "INFO"


def _int_from_env(environ: dict, name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, using {default}")
        return default
    if value < 0:
        logger.warning(f"Ignoring {name}={raw!r}: must be >= 0, using {default}")
        return default
    return value


def load_settings(argv: list[str] | None = None, environ: dict | None = None) -> Settings:
    """Resolve settings. Priority: --db-path CLI arg > CODENOTES_DB_PATH env var > default.

    The CLI arg exists because MCP stdio launchers may not forward env vars.
    """
    argv = argv if argv is not None else []
    environ = environ if environ is not None else os.environ

    db_path_from_arg = None
    if "--db-path" in argv:
        idx = argv.index("--db-path")
        if idx + 1 < len(argv):
            db_path_from_arg = argv[idx + 1]

    if db_path_from_arg:
        db_path, source = db_path_from_arg, "--db-path arg"
    elif environ.get("CODENOTES_DB_PATH"):
        db_path, source = environ["CODENOTES_DB_PATH"], "env"
    else:
        db_path, source = DEFAULT_DB_PATH, "default"

    # Workspace root is always two levels above the db: {workspace}/.vscode/codenotes.db
    abs_db_path = os.path.abspath(db_path)
    workspace_root = os.path.dirname(os.path.dirname(abs_db_path))

    return Settings(
        db_path=abs_db_path,
        db_path_source=source,
        workspace_root=workspace_root,
        context_radius=_int_from_env(environ, "CODENOTES_CONTEXT_RADIUS", DEFAULT_CONTEXT_RADIUS),
        search_radius=_int_from_env(environ, "CODENOTES_SEARCH_RADIUS", DEFAULT_SEARCH_RADIUS),
        log_level=environ.get("CODENOTES_LOG_LEVEL", "INFO").upper(),
    )
