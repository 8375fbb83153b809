# backend/modules/kitchen/services/sweep_scheduler.py

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from core.database import SessionLocal
from ..config.kitchen_config import KitchenConfig
from .ticket_orchestrator import SweepResult, TicketOrchestrator

logger = logging.getLogger(__name__)

HEARTBEAT_JOB_ID = "kitchen_heartbeat_expiry"


class KitchenSweepScheduler:
    """Schedules periodic pacing sweeps, one job per restaurant"""

    def __init__(
        self,
        orchestrator_factory: Callable[[Session], TicketOrchestrator],
        notifier,
        settings: KitchenConfig,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.orchestrator_factory = orchestrator_factory
        self.notifier = notifier
        self.settings = settings
        self.session_factory = session_factory
        self.scheduler = AsyncIOScheduler()
        self.restaurant_ids: Set[str] = set()
        # Restaurants that received a ticket since their current sweep began
        self._touched: Set[str] = set()

    @staticmethod
    def _job_id(restaurant_id: str) -> str:
        return f"kitchen_sweep_{restaurant_id}"

    def start(self):
        """Start the scheduler with the heartbeat job and configured restaurants"""
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            self.expire_sessions,
            trigger=IntervalTrigger(seconds=self.settings.HEARTBEAT_CHECK_INTERVAL_SECONDS),
            id=HEARTBEAT_JOB_ID,
            name="Expire stale kitchen display sessions",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        for restaurant_id in self.settings.SWEEP_RESTAURANT_IDS:
            self.add_restaurant(restaurant_id)

        self.scheduler.start()
        logger.info(
            f"Kitchen sweep scheduler started for {len(self.restaurant_ids)} restaurants"
        )

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Kitchen sweep scheduler stopped")

    def add_restaurant(self, restaurant_id: str) -> bool:
        """Schedule sweeps for a restaurant; returns False if already scheduled"""
        self._touched.add(restaurant_id)
        if restaurant_id in self.restaurant_ids:
            return False

        self.scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(seconds=self.settings.SWEEP_INTERVAL_SECONDS),
            id=self._job_id(restaurant_id),
            args=[restaurant_id],
            name=f"Pacing sweep for restaurant {restaurant_id}",
            max_instances=1,  # Single-flight per restaurant
            coalesce=True,
            replace_existing=True,
        )
        self.restaurant_ids.add(restaurant_id)
        logger.info(f"Scheduled pacing sweep for restaurant {restaurant_id}")
        return True

    def remove_restaurant(self, restaurant_id: str) -> bool:
        self._touched.discard(restaurant_id)
        if restaurant_id not in self.restaurant_ids:
            return False

        job_id = self._job_id(restaurant_id)
        if self.scheduler.get_job(job_id):
            self.scheduler.remove_job(job_id)
        self.restaurant_ids.discard(restaurant_id)
        logger.info(f"Removed pacing sweep for restaurant {restaurant_id}")
        return True

    async def run_sweep(self, restaurant_id: str) -> Optional[SweepResult]:
        """
        Run one bounded sweep for a restaurant on its own database session.

        Store work runs on a single worker thread owned by this run, so the
        timeout fires even while a query is blocked. Timeouts and errors are
        logged and end this run only. The session is closed on the same worker
        once any in-flight call has returned.

        A restaurant that was added at runtime and has no active tickets left
        is unscheduled; its next ticket schedules it again.
        """
        self._touched.discard(restaurant_id)
        db = self.session_factory()
        executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"kitchen-sweep-{restaurant_id}"
        )
        try:
            orchestrator = self.orchestrator_factory(db)
            result = await asyncio.wait_for(
                orchestrator.recompute_pacing_sweep(restaurant_id, executor=executor),
                timeout=self.settings.SWEEP_TIMEOUT_SECONDS,
            )
            if result.evaluated == 0:
                self._release_idle(restaurant_id)
            return result
        except asyncio.TimeoutError:
            logger.error(
                f"Pacing sweep for restaurant {restaurant_id} timed out after "
                f"{self.settings.SWEEP_TIMEOUT_SECONDS}s"
            )
        except Exception as e:
            logger.error(f"Pacing sweep for restaurant {restaurant_id} failed: {str(e)}")
        finally:
            await asyncio.get_running_loop().run_in_executor(executor, db.close)
            executor.shutdown(wait=False)
        return None

    def _release_idle(self, restaurant_id: str) -> None:
        if restaurant_id not in self.restaurant_ids or restaurant_id in self._touched:
            return
        if restaurant_id in self.settings.SWEEP_RESTAURANT_IDS:
            return
        logger.info(f"Restaurant {restaurant_id} has no active tickets")
        self.remove_restaurant(restaurant_id)

    async def expire_sessions(self) -> int:
        try:
            return await self.notifier.expire_stale_sessions()
        except Exception as e:
            logger.error(f"Error expiring kitchen display sessions: {str(e)}")
            return 0
