"""
Handler for StaffDeactivated events.

A deactivated staff member must not keep working on an existing session:
every session they hold is revoked immediately.
"""

import logging
from typing import Callable

from core.events import StaffDeactivated

logger = logging.getLogger(__name__)


def handle_staff_deactivated(session_manager) -> Callable:
    """
    Factory that returns a StaffDeactivated handler.

    Args:
        session_manager: auth.session.SessionManager instance
    """

    def handler(event: StaffDeactivated):
        revoked = session_manager.revoke_all_for_staff(event.staff.id)
        logger.info(f"Revoked {revoked} sessions for deactivated staff {event.staff.id}")

    return handler
