#!/usr/bin/env python3
"""
CodeNotes outdated-note checker for CI/CD pipelines.

Usage:
    notes-check /path/to/codenotes.db [workspace_root] [--json]

Relocates every note against the files as they are now, then reports notes
whose annotated code changed since the note was written.

Exit codes:
    0: All notes are current
    1: Outdated notes found
    2: Configuration or file error
"""

import argparse
import json
import os
import sys
from pathlib import Path

# Allow running from a source checkout without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from codenotes.config import load_settings  # noqa: E402
from codenotes.database import NotesDB  # noqa: E402
from codenotes.fingerprint import read_lines  # noqa: E402
from codenotes.relocator import NoteRelocator  # noqa: E402
from codenotes.symbols import TreeSitterLocator  # noqa: E402


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Report CodeNotes whose code changed since they were written',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    %(prog)s .vscode/codenotes.db
    %(prog)s .vscode/codenotes.db . --json
        """,
    )

    parser.add_argument('db_path', help='Path to codenotes.db')
    parser.add_argument(
        'workspace_root',
        nargs='?',
        default=None,
        help='Workspace root the stored paths are relative to (default: two levels above the db)',
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Output JSON instead of human-readable format',
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Also list notes that were relocated',
    )

    args = parser.parse_args(argv)

    db_path = Path(args.db_path)
    if not db_path.exists():
        print(f'ERROR: Database not found: {db_path}', file=sys.stderr)
        return 2

    root = Path(args.workspace_root) if args.workspace_root else db_path.resolve().parent.parent
    if not root.is_dir():
        print(f'ERROR: Workspace root is not a directory: {root}', file=sys.stderr)
        return 2

    try:
        db = NotesDB(str(db_path))
        db.connect()
    except Exception as e:
        print(f'ERROR: Failed to connect to database: {e}', file=sys.stderr)
        return 2

    # Same radii the server hashed with (CODENOTES_CONTEXT_RADIUS / CODENOTES_SEARCH_RADIUS)
    settings = load_settings(['--db-path', str(db_path)], os.environ)
    relocator = NoteRelocator(
        db,
        TreeSitterLocator(),
        context_radius=settings.context_radius,
        search_radius=settings.search_radius,
    )

    def load_file_lines(file_path):
        return read_lines(root / file_path)

    try:
        reports = relocator.check_all(load_file_lines)
    finally:
        db.close()

    outdated = [(r.file_path, c) for r in reports for c in r.outdated]
    relocated = [(r.file_path, c) for r in reports for c in r.changes if c.resolution.relocated]

    if args.json:
        output = {
            'status': 'pass' if not outdated else 'fail',
            'files_checked': len(reports),
            'outdated_count': len(outdated),
            'outdated': [{'file': f, **c.to_dict()} for f, c in outdated],
        }
        if args.verbose:
            output['relocated'] = [{'file': f, **c.to_dict()} for f, c in relocated]
        print(json.dumps(output, indent=2))
    else:
        print('\n[CodeNotes Outdated Check]\n')
        print(f'  Checked {len(reports)} files')

        if args.verbose and relocated:
            print('\nRELOCATED:')
            for file_path, c in relocated:
                print(
                    f'  {file_path}: {c.note_id} {c.old_range.start + 1} -> '
                    f'{c.new_range.start + 1} ({c.resolution.value})'
                )

        if outdated:
            print('\nOUTDATED:')
            for file_path, c in outdated:
                print(f'  {file_path}:{c.new_range.start + 1}-{c.new_range.end + 1}  {c.note_id}')
            print()

        if outdated:
            print(f'FAILED: {len(outdated)} outdated notes')
        else:
            print('PASSED: All notes are current')

    return 1 if outdated else 0


if __name__ == '__main__':
    sys.exit(main())
