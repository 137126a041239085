"""
Tool handlers package.

Re-exports the handler functions; the executor lives in
``relaycode.tool_handlers.dispatch`` (imported lazily by callers because it
depends on the pending edit controller, which depends on these handlers).
"""

# _path: sandboxing and file-type tables
from relaycode.tool_handlers._path import (
    BINARY_EXTENSIONS,
    CODE_EXTENSIONS,
    DEFAULT_IGNORE_DIRS,
    REQUIREMENTS_EXTENSIONS,
    _is_path_within_sandbox,
    _validate_path,
    to_display_path,
)

# read_handlers
from relaycode.tool_handlers.read_handlers import list_dir, read

# search_handlers
from relaycode.tool_handlers.search_handlers import search_by_content, search_by_name

# write_handlers
from relaycode.tool_handlers.write_handlers import (
    ProposedEdit,
    compute_insert,
    compute_update,
    create,
    delete,
)
