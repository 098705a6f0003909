"""Status reporting to an external observer over HTTP."""

import asyncio
import logging
from typing import Callable, List, Optional, Set

import httpx

from flasher.api.models import ReportPayload
from flasher.services.state_manager import SessionState


class ReportService:
    """POSTs a status report whenever the session step or error changes."""

    def __init__(self, report_url: str, state: Optional[SessionState] = None):
        """Initialize report service.

        Args:
            report_url: Endpoint receiving ReportPayload JSON
            state: SessionState instance (uses singleton if None)
        """
        self.logger = logging.getLogger("flasher.reporter")
        self.report_url = report_url
        self.state = state or SessionState()
        self._unsubscribers: List[Callable[[], None]] = []
        self._pending: Set[asyncio.Task] = set()

    def build_payload(self) -> ReportPayload:
        snapshot = self.state.snapshot()
        return ReportPayload(
            step=snapshot.step,
            step_name=snapshot.step.name,
            error=snapshot.error,
            error_name=snapshot.error.name,
            progress=snapshot.progress,
            message=snapshot.message,
            serial=snapshot.serial,
        )

    async def report(self) -> None:
        """Send the current status.

        Note:
            Failures are logged but not raised to avoid blocking the session
        """
        payload = self.build_payload()
        self.logger.debug(
            f"Reporting: step={payload.step_name}, error={payload.error_name}"
        )

        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.post(
                    self.report_url,
                    json=payload.model_dump(mode="json"),
                )
                response.raise_for_status()
                self.logger.debug("Report sent successfully")

        except httpx.HTTPError as e:
            self.logger.warning(
                f"Failed to report status to {self.report_url}: {e}. "
                f"Continuing session..."
            )
        except Exception as e:
            self.logger.error(
                f"Unexpected error reporting status: {e}",
                exc_info=True,
            )

    def _schedule(self, _value) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running event loop, skipping report")
            return
        task = loop.create_task(self.report())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def start(self) -> None:
        """Subscribe to step and error changes."""
        if self._unsubscribers:
            return
        self._unsubscribers = [
            self.state.step.subscribe(self._schedule),
            self.state.error.subscribe(self._schedule),
        ]
        self.logger.info(f"Reporting status to {self.report_url}")

    async def stop(self) -> None:
        """Unsubscribe and wait for in-flight reports."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
