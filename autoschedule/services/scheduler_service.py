"""
Persistent reconciliation service that keeps per-user controllers in memory.
"""

import logging
import threading
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from ..database import SessionLocal
from ..schemas import SchedulingConfig
from .reconciliation import ReconciliationController

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Registry of reconciliation controllers sharing one background scheduler."""

    def __init__(self, scheduler=None, session_factory=SessionLocal, scheduling_config: Optional[SchedulingConfig] = None):
        self.scheduler = scheduler if scheduler is not None else BackgroundScheduler()
        self.session_factory = session_factory
        self.scheduling_config = scheduling_config
        # In-memory storage of user controllers
        self.controllers: Dict[int, ReconciliationController] = {}
        self._lock = threading.Lock()

    def start(self):
        """Start the background scheduler"""
        if not self.scheduler.running:
            self.scheduler.start()

    def get_controller(self, user_id: int) -> Optional[ReconciliationController]:
        """Get existing controller for user without creating one."""
        return self.controllers.get(user_id)

    def get_or_create_controller(self, user_id: int) -> ReconciliationController:
        """Get existing controller or create and start a new one for user."""
        with self._lock:
            controller = self.controllers.get(user_id)
            if controller is None:
                self.start()
                controller = ReconciliationController(
                    user_id,
                    self.scheduler,
                    session_factory=self.session_factory,
                    scheduling_config=self.scheduling_config,
                )
                controller.start()
                self.controllers[user_id] = controller
                logger.info(f"Created reconciliation controller for user {user_id}")
            return controller

    def remove_controller(self, user_id: int):
        """Stop and forget a user's controller."""
        with self._lock:
            controller = self.controllers.pop(user_id, None)
        if controller:
            controller.stop()

    def shutdown(self):
        with self._lock:
            controllers = list(self.controllers.values())
            self.controllers.clear()
        for controller in controllers:
            controller.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)


# Global reconciliation service instance
reconciliation_service = ReconciliationService()
