"""
Default middleware for the relaycode host.

Call install_defaults() at startup to register all built-in hooks.
"""

import os

from relaycode.config import HostContext
from relaycode.middleware import logging_hook, metrics_hook


def install_defaults(ctx=None, log_path=None, run_context=None):
    """Register all default middleware hooks. Returns installed components.

    Args:
        ctx: HostContext; when it names a log_dir and no log_path is given,
            a timestamped JSONL file is created there.
        log_path: Explicit path for JSONL logging.
        run_context: Extra fields (run_name, ...) added to every log record.

    Returns:
        Dict with references to installed components (e.g. metrics collector).
    """
    context = dict(run_context or {})
    if isinstance(ctx, HostContext):
        context.setdefault("root", ctx.root_path)
        context.setdefault("work_dir", os.path.abspath(ctx.work_dir))
        if log_path is None and ctx.log_dir:
            log_path = logging_hook.init_logging(ctx.log_dir, context.get("run_name"))
    logging_hook.install(log_path=log_path, run_context=context)
    collector = metrics_hook.install()

    return {
        "metrics": collector,
        "log_path": logging_hook.get_log_path(),
    }
