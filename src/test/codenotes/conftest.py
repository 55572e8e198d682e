import sys
from pathlib import Path

import pytest

# Add src directory to path so the package imports without installing
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from codenotes.database import NotesDB  # noqa: E402
from codenotes.symbols import SymbolLocator  # noqa: E402


class StubLocator(SymbolLocator):
    """Locator with canned answers, recording every lookup."""

    def __init__(self, symbols: dict | None = None, enclosing: str | None = None, error: Exception | None = None):
        self.symbols = symbols or {}
        self.enclosing = enclosing
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def locate(self, file_path, lines, symbol_name):
        self.calls.append((file_path, symbol_name))
        if self.error:
            raise self.error
        return self.symbols.get(symbol_name)

    def enclosing_symbol(self, file_path, lines, line):
        return self.enclosing


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary NotesDB connected to a fresh database."""
    db_path = str(tmp_path / "test.db")
    db = NotesDB(db_path)
    db.connect()
    yield db
    db.close()


@pytest.fixture
def stub_locator():
    return StubLocator


@pytest.fixture
def numbered_lines():
    """Thirty distinct lines, so every context window is unique."""
    return [f"line {i}" for i in range(30)]


@pytest.fixture
def sample_python_file(tmp_path):
    """Create a sample Python file for symbol lookup tests."""
    code = tmp_path / "sample.py"
    code.write_text(
        'def hello():\n    return "world"\n\n\nclass Foo:\n    def bar(self, x):\n        return x + 1\n'
    )
    return str(code)


@pytest.fixture
def sample_typescript_file(tmp_path):
    """Create a sample TypeScript file for symbol lookup tests."""
    code = tmp_path / "sample.ts"
    code.write_text(
        "function greet(name: string): string {\n"
        '    return "hello " + name;\n'
        "}\n\n"
        "class MyService {\n"
        "    run(): void {}\n"
        "}\n\n"
        "const handler = (x: number) => x * 2;\n"
    )
    return str(code)
