"""Dispatcher protocol.

One implementation per item kind; all share the orchestration loop in
:class:`scrubjay.dispatch.base.BaseDispatcher`.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from scrubjay.models.base import AlertKind
    from scrubjay.models.dispatch import DispatchResult


@runtime_checkable
class Dispatcher(Protocol):
    """Per-kind dispatch strategy."""

    @property
    def kind(self) -> AlertKind:
        ...

    async def get_undelivered(self, since: datetime | None = None) -> Sequence[Any]:
        """Undelivered (channel, item) rows created at or after ``since``.

        ``since=None`` is unbounded and is used by startup reconciliation.
        """
        ...

    async def dispatch_since(self, since: datetime | None = None) -> DispatchResult:
        """Run one send-and-record cycle."""
        ...
