"""
Agent response protocol: box unwrapping, tool parsing and classification.
"""

from relaycode.protocol.classifier import (
    EMPTY,
    MIXED,
    READ,
    WRITE,
    ValidationResult,
    classify,
    ensure_valid,
    validate,
)
from relaycode.protocol.parser import (
    MESSAGE_END,
    ParsedResponse,
    ToolInvocation,
    has_message_end,
    parse_blocks,
    parse_response,
    parse_tool_params,
)
from relaycode.protocol.schema import (
    ACTION_KINDS,
    INFORMATION_KINDS,
    TAG_ALIASES,
    TOOL_SPECS,
    Category,
    ToolKind,
    ToolSpec,
)
