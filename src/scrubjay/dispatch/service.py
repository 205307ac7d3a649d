"""Dispatcher registry.

Routes by :class:`AlertKind` and runs every registered kind in turn. A
failing kind is logged and does not stop the others; only a lost
database connection propagates.
"""

from __future__ import annotations

import logging
from datetime import datetime

from scrubjay.core.exceptions import NotFoundError, ScrubJayError, StorageUnavailableError
from scrubjay.models.base import AlertKind
from scrubjay.models.dispatch import DispatchResult
from scrubjay.protocols.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class DispatcherService:
    def __init__(self, dispatchers: list[Dispatcher] | None = None) -> None:
        self._dispatchers: dict[AlertKind, Dispatcher] = {}
        for dispatcher in dispatchers or []:
            self.register(dispatcher)

    def register(self, dispatcher: Dispatcher) -> None:
        self._dispatchers[dispatcher.kind] = dispatcher

    @property
    def kinds(self) -> list[AlertKind]:
        return list(self._dispatchers)

    def get(self, kind: AlertKind) -> Dispatcher:
        try:
            return self._dispatchers[AlertKind(kind)]
        except KeyError:
            raise NotFoundError(f"No dispatcher registered for {kind}") from None

    async def dispatch(self, kind: AlertKind, since: datetime | None = None) -> DispatchResult:
        return await self.get(kind).dispatch_since(since)

    async def dispatch_all(self, since: datetime | None = None) -> dict[AlertKind, DispatchResult | None]:
        """Run one cycle per kind. Kinds that raised map to ``None``."""
        results: dict[AlertKind, DispatchResult | None] = {}
        for kind, dispatcher in self._dispatchers.items():
            try:
                results[kind] = await dispatcher.dispatch_since(since)
            except StorageUnavailableError:
                raise
            except ScrubJayError as e:
                logger.error(f"{kind.value} dispatch failed: {e}")
                results[kind] = None
        return results
