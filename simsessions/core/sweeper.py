"""
Shutdown Sweeper
================

Releases every registered session when the process exits.

Owned simulators are shut down and deleted, attached ones are only
forgotten. Each teardown is bounded by a timeout so one hung simctl call
cannot keep the process alive; the sweep then moves on to the next device.
"""

import asyncio
from dataclasses import dataclass, field

from simsessions.core.errors import NotActive
from simsessions.core.lifecycle import SessionLifecycleManager, TeardownOutcome
from simsessions.core.registry import DeviceRegistry
from simsessions.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SweepReport:
    """Per-session outcomes of one sweep."""

    outcomes: list[TeardownOutcome] = field(default_factory=list)
    timed_out: list[str] = field(default_factory=list)

    @property
    def deleted(self) -> list[str]:
        return [o.instance_id for o in self.outcomes if o.owned and o.delete_error is None]

    @property
    def released(self) -> list[str]:
        return [o.session_id for o in self.outcomes if not o.owned]

    @property
    def failed(self) -> list[TeardownOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def summary(self) -> dict:
        return {
            "sessions": len(self.outcomes) + len(self.timed_out),
            "deleted": len(self.deleted),
            "released": len(self.released),
            "failed": len(self.failed),
            "timed_out": len(self.timed_out),
        }


class ShutdownSweeper:
    """Best-effort, bounded teardown of every session in the registry."""

    def __init__(
        self,
        registry: DeviceRegistry,
        lifecycle: SessionLifecycleManager,
        teardown_timeout: float = 30.0,
    ) -> None:
        self.registry = registry
        self.lifecycle = lifecycle
        self.teardown_timeout = teardown_timeout

    async def sweep(self) -> SweepReport:
        """
        Tear down owned devices, then release everything else.

        Returns:
            A report of what happened to each session. The registry is
            empty afterwards.
        """
        report = SweepReport()

        owned_sessions = self.registry.for_each_owned(lambda session_id, handle: session_id)
        for session_id in owned_sessions:
            await self._release(session_id, report)

        for session_id, _ in self.registry.snapshot():
            await self._release(session_id, report)

        logger.info("Shutdown sweep finished", **report.summary())
        for outcome in report.failed:
            logger.warning("Teardown failed during sweep", **outcome.to_dict())
        return report

    async def _release(self, session_id: str, report: SweepReport) -> None:
        handle = self.registry.find(session_id)
        if handle is None:
            return
        try:
            outcome = await asyncio.wait_for(
                self.lifecycle.destroy(session_id), timeout=self.teardown_timeout
            )
            report.outcomes.append(outcome)
        except NotActive:
            # Released concurrently
            pass
        except asyncio.TimeoutError:
            logger.error(
                "Teardown timed out",
                session_id=session_id,
                timeout=self.teardown_timeout,
            )
            report.timed_out.append(session_id)
        except Exception as e:
            logger.exception("Unexpected teardown failure", session_id=session_id, error=str(e))
            report.outcomes.append(
                TeardownOutcome(
                    session_id=session_id,
                    instance_id=handle.instance_id,
                    owned=handle.owned,
                    delete_error=str(e),
                )
            )
        finally:
            self.registry.remove(session_id)
