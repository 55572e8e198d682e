from abc import ABC, abstractmethod
from pathlib import Path

from tree_sitter_language_pack import get_parser

# Map file extensions to tree-sitter language names
LANG_MAP: dict[str, str] = {
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
}

# Tree-sitter node types that declare a named function, method or class
SYMBOL_NODE_TYPES: dict[str, list[str]] = {
    "python": ["function_definition", "class_definition"],
    "typescript": [
        "function_declaration",
        "class_declaration",
        "abstract_class_declaration",
        "interface_declaration",
        "method_definition",
        "variable_declarator",
    ],
    "tsx": [
        "function_declaration",
        "class_declaration",
        "abstract_class_declaration",
        "interface_declaration",
        "method_definition",
        "variable_declarator",
    ],
    "javascript": [
        "function_declaration",
        "class_declaration",
        "method_definition",
        "variable_declarator",
    ],
}

# `const handler = () => {}` only counts when the value is a function
FUNCTION_VALUE_TYPES = ("arrow_function", "function_expression", "function")


class SymbolLocator(ABC):
    """Maps a symbol name to its current declaration line.

    Lines are zero-based. Implementations return None when the symbol is gone
    or the file is not a symbol-bearing kind; they never raise for that.
    """

    @abstractmethod
    def locate(self, file_path: str, lines: list[str], symbol_name: str) -> int | None: ...

    @abstractmethod
    def enclosing_symbol(self, file_path: str, lines: list[str], line: int) -> str | None: ...


def extract_symbol_name(node) -> str | None:
    """Extract the declared name from a tree-sitter declaration node."""
    if node.type == "variable_declarator":
        value = node.child_by_field_name("value")
        if value is None or value.type not in FUNCTION_VALUE_TYPES:
            return None
    for child in node.children:
        if child.type in ("identifier", "property_identifier", "name", "type_identifier"):
            return child.text.decode("utf-8")
    return None


def language_for(file_path: str) -> str | None:
    return LANG_MAP.get(Path(file_path).suffix)


def iter_declarations(file_path: str, lines: list[str]):
    """Yield (name, start_line, end_line) for every declaration, in document order."""
    language = language_for(file_path)
    if not language:
        return

    parser = get_parser(language)
    tree = parser.parse("\n".join(lines).encode("utf-8"))
    target_types = SYMBOL_NODE_TYPES.get(language, [])

    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.type in target_types:
            name = extract_symbol_name(node)
            if name:
                yield name, node.start_point[0], node.end_point[0]
        stack.extend(reversed(node.children))


class TreeSitterLocator(SymbolLocator):
    """Symbol lookup over a tree-sitter parse of the supplied lines."""

    def locate(self, file_path: str, lines: list[str], symbol_name: str) -> int | None:
        for name, start_line, _ in iter_declarations(file_path, lines):
            if name == symbol_name:
                return start_line
        return None

    def enclosing_symbol(self, file_path: str, lines: list[str], line: int) -> str | None:
        """Innermost declaration whose span contains line."""
        enclosing = None
        for name, start_line, end_line in iter_declarations(file_path, lines):
            # Document order visits parents before children, so the last hit is innermost
            if start_line <= line <= end_line:
                enclosing = name
        return enclosing
