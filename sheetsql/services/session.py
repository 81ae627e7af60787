from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from ..models.config_models import IngestConfig
from ..models.schema import ProcessedWorkbook, SchemaInfo

"""Upload session registry.

One entry per upload id holding the processed workbook and its schema. The
registry is an ordinary object handed to whoever needs it; there is no module
level instance. Entries idle for longer than `ttl_seconds` are evicted by
sweep(), which start_sweeper() runs periodically on the event loop.
"""

__all__ = [
    "Session",
    "SessionRegistry",
]

logger = logging.getLogger(__name__)


@dataclass
class Session:
    workbook: ProcessedWorkbook
    schema: SchemaInfo
    last_access: float = field(default=0.0)


class SessionRegistry:
    def __init__(
        self,
        ttl_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._sweeper: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls, config: IngestConfig, clock: Callable[[], float] = time.monotonic
    ) -> SessionRegistry:
        return cls(ttl_seconds=config.session_ttl_seconds, clock=clock)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, upload_id: object) -> bool:
        return upload_id in self._sessions

    def create(self, workbook: ProcessedWorkbook) -> str:
        self._sessions[workbook.upload_id] = Session(
            workbook=workbook, schema=workbook.schema, last_access=self._clock()
        )
        logger.info(f"session created: {workbook.upload_id} (active={len(self._sessions)})")
        return workbook.upload_id

    def get(self, upload_id: str) -> Session | None:
        """Return the session and refresh its last access time."""
        session = self._sessions.get(upload_id)
        if session is not None:
            session.last_access = self._clock()
        return session

    def delete(self, upload_id: str) -> bool:
        return self._sessions.pop(upload_id, None) is not None

    def sweep(self) -> list[str]:
        """Evict sessions idle for longer than the TTL; returns the evicted ids."""
        now = self._clock()
        expired = [
            upload_id
            for upload_id, session in self._sessions.items()
            if now - session.last_access > self.ttl_seconds
        ]
        for upload_id in expired:
            del self._sessions[upload_id]
            logger.info(f"session expired: {upload_id}")
        return expired

    def start_sweeper(self, interval_seconds: float = 60.0) -> asyncio.Task[None]:
        """Run sweep() every `interval_seconds` on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper

        async def _run() -> None:
            while True:
                await asyncio.sleep(interval_seconds)
                self.sweep()

        self._sweeper = asyncio.get_running_loop().create_task(_run())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
