"""Helpers shared by CLI commands."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import click

from clinic_records.config.schema import Config
from clinic_records.models.user import UserAccount, UserRole
from clinic_records.store import RecordStore, create_store


def get_config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


def store_from_context(ctx: click.Context, max_connections: Optional[int] = None) -> RecordStore:
    """Create the configured record store for a command.

    The store is closed when the command's context is torn down, including
    after ``sys.exit``.
    """
    config = get_config(ctx)
    store = create_store(config.store, max_connections=max_connections or config.importer.max_workers)
    ctx.call_on_close(store.close)
    return store


def viewer_from_options(role: Optional[str], can_view_financial: bool) -> Optional[UserAccount]:
    """Build the viewing account from ``--role`` / ``--can-view-financial``.

    Without ``--role`` there is no viewer and nothing is hidden.
    """
    if role is None:
        return None
    return UserAccount(email="cli@localhost", role=UserRole(role), can_view_financial=can_view_financial)


viewer_options = [
    click.option(
        "--role",
        type=click.Choice([r.value for r in UserRole]),
        default=None,
        help="Role of the viewing account; costs are hidden unless it may see financials",
    ),
    click.option(
        "--can-view-financial",
        is_flag=True,
        help="Viewing account may see surgery costs",
    ),
]


def with_viewer_options(func):
    for option in reversed(viewer_options):
        func = option(func)
    return func


@contextmanager
def quiet_console(enabled: bool) -> Iterator[None]:
    """Silence console log handlers, e.g. while printing JSON to stdout."""
    silenced = []
    if enabled:
        for handler in logging.getLogger().handlers:
            if isinstance(handler, logging.StreamHandler) and not hasattr(handler, "baseFilename"):
                silenced.append((handler, handler.level))
                handler.setLevel(logging.CRITICAL + 1)
    try:
        yield
    finally:
        for handler, level in silenced:
            handler.setLevel(level)
