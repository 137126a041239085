"""
Tool kinds, their categories and parameter schemas, and the tag alias table.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Tuple


class Category(str, Enum):
    INFORMATION = "information"
    ACTION = "action"


class ArgStyle(str, Enum):
    """How the text after ``[NAME]`` on the start line is interpreted."""

    TOKENS = "tokens"
    FREE_TEXT = "free_text"
    IMPORTANCE = "importance"
    NONE = "none"


class ToolKind(str, Enum):
    LIST = "LIST"
    READ = "READ"
    SEARCH_BY_NAME = "SEARCH_BY_NAME"
    SEARCH_BY_CONTENT = "SEARCH_BY_CONTENT"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    INSERT = "INSERT"
    DELETE = "DELETE"
    MESSAGE = "MESSAGE"
    DISCOVERED = "DISCOVERED"
    SWITCH_TO = "SWITCH_TO"
    EXPLORATION_FINDINGS = "EXPLORATION_FINDINGS"
    DETAILED_PLAN = "DETAILED_PLAN"
    COMMIT = "COMMIT"

    @property
    def spec(self) -> "ToolSpec":
        return TOOL_SPECS[self]

    @property
    def category(self) -> Category:
        return TOOL_SPECS[self].category


@dataclass(frozen=True)
class ToolSpec:
    kind: ToolKind
    category: Category
    arg_style: ArgStyle
    # Positional names for TOKENS style, in order.
    positional: Tuple[str, ...] = ()
    required: Tuple[str, ...] = ()
    # Name of the parameter that receives the body (after any description line).
    body_param: Optional[str] = None
    # Parameter that takes a leading "# " body line, with its default.
    description_param: Optional[str] = None
    description_default: Optional[str] = None
    defaults: Mapping[str, str] = field(default_factory=dict)

    @property
    def param_names(self) -> Tuple[str, ...]:
        names = list(self.positional)
        for extra in (self.description_param, self.body_param):
            if extra and extra not in names:
                names.append(extra)
        for name in self.defaults:
            if name not in names:
                names.append(name)
        return tuple(names)


_I = Category.INFORMATION
_A = Category.ACTION

TOOL_SPECS: Dict[ToolKind, ToolSpec] = {
    ToolKind.LIST: ToolSpec(
        ToolKind.LIST, _I, ArgStyle.FREE_TEXT,
        positional=("path",), body_param="explanation", defaults={"path": "."},
    ),
    ToolKind.READ: ToolSpec(
        ToolKind.READ, _I, ArgStyle.FREE_TEXT,
        positional=("file_name",), body_param="explanation", defaults={"file_name": "."},
    ),
    ToolKind.SEARCH_BY_NAME: ToolSpec(
        ToolKind.SEARCH_BY_NAME, _I, ArgStyle.TOKENS,
        positional=("regex", "folder"), required=("regex",),
        body_param="explanation", defaults={"folder": "."},
    ),
    ToolKind.SEARCH_BY_CONTENT: ToolSpec(
        ToolKind.SEARCH_BY_CONTENT, _I, ArgStyle.TOKENS,
        positional=("regex", "folder"), required=("regex",),
        body_param="explanation", defaults={"folder": "."},
    ),
    ToolKind.CREATE: ToolSpec(
        ToolKind.CREATE, _A, ArgStyle.TOKENS,
        positional=("path",), required=("path",),
        body_param="contents", description_param="description",
    ),
    ToolKind.UPDATE: ToolSpec(
        ToolKind.UPDATE, _A, ArgStyle.TOKENS,
        positional=("file_name", "start_line", "end_line"),
        required=("file_name", "start_line", "end_line"),
        body_param="contents", description_param="change_description",
        description_default="File update",
    ),
    ToolKind.INSERT: ToolSpec(
        ToolKind.INSERT, _A, ArgStyle.TOKENS,
        positional=("file_name", "line_number"),
        required=("file_name", "line_number"),
        body_param="contents", description_param="change_description",
        description_default="Line insertion",
    ),
    ToolKind.DELETE: ToolSpec(
        ToolKind.DELETE, _A, ArgStyle.TOKENS,
        positional=("file_name",), required=("file_name",), body_param="explanation",
    ),
    ToolKind.MESSAGE: ToolSpec(ToolKind.MESSAGE, _A, ArgStyle.FREE_TEXT, body_param="content"),
    ToolKind.DISCOVERED: ToolSpec(
        ToolKind.DISCOVERED, _A, ArgStyle.IMPORTANCE,
        required=("content",), body_param="content", defaults={"importance": "5"},
    ),
    ToolKind.SWITCH_TO: ToolSpec(
        ToolKind.SWITCH_TO, _A, ArgStyle.FREE_TEXT,
        positional=("mode",), required=("mode",),
    ),
    ToolKind.EXPLORATION_FINDINGS: ToolSpec(
        ToolKind.EXPLORATION_FINDINGS, _A, ArgStyle.FREE_TEXT,
        positional=("name",), required=("name",), body_param="content",
    ),
    ToolKind.DETAILED_PLAN: ToolSpec(
        ToolKind.DETAILED_PLAN, _A, ArgStyle.FREE_TEXT,
        positional=("name",), required=("name",), body_param="content",
    ),
    ToolKind.COMMIT: ToolSpec(ToolKind.COMMIT, _A, ArgStyle.TOKENS, positional=("file_name",)),
}

INFORMATION_KINDS: FrozenSet[ToolKind] = frozenset(
    k for k, s in TOOL_SPECS.items() if s.category is Category.INFORMATION
)
ACTION_KINDS: FrozenSet[ToolKind] = frozenset(TOOL_SPECS) - INFORMATION_KINDS

# Legacy tag names -> (canonical kind, implied params).
TAG_ALIASES: Dict[str, Tuple[ToolKind, Dict[str, str]]] = {
    "READ_CODE": (ToolKind.READ, {}),
    "READ_REQUIREMENTS": (ToolKind.READ, {}),
    "READ_FILE": (ToolKind.READ, {}),
    "LIST_DIRECTORY": (ToolKind.LIST, {}),
    "SEARCH_NAME": (ToolKind.SEARCH_BY_NAME, {}),
    "SEARCH_FILES_BY_NAME": (ToolKind.SEARCH_BY_NAME, {}),
    "SEARCH_CODE": (ToolKind.SEARCH_BY_CONTENT, {"file_type": "code"}),
    "SEARCH_REQUIREMENTS": (ToolKind.SEARCH_BY_CONTENT, {"file_type": "requirements"}),
    "SEARCH_FILES_BY_CONTENT": (ToolKind.SEARCH_BY_CONTENT, {}),
    "CREATE_NEW_FILE": (ToolKind.CREATE, {}),
    "UPDATE_FILE": (ToolKind.UPDATE, {}),
    "INSERT_LINES": (ToolKind.INSERT, {}),
    "DELETE_FILE": (ToolKind.DELETE, {}),
    "SWITCH_TO_EXPLORATION": (ToolKind.SWITCH_TO, {"mode": "exploration"}),
    "SWITCH_TO_PLANNING": (ToolKind.SWITCH_TO, {"mode": "planning"}),
    "SWITCH_TO_IMPLEMENTATION": (ToolKind.SWITCH_TO, {"mode": "implementation"}),
}


def resolve_tag(tag: str) -> Optional[Tuple[ToolKind, Dict[str, str]]]:
    """Map a tag as written to its kind and implied params; None if unknown."""
    if tag in ToolKind.__members__:
        return ToolKind[tag], {}
    alias = TAG_ALIASES.get(tag)
    if alias is None:
        return None
    kind, implied = alias
    return kind, dict(implied)


def missing_required(kind: ToolKind, params: Mapping[str, str]) -> Tuple[str, ...]:
    return tuple(name for name in TOOL_SPECS[kind].required if not params.get(name))
