"""
Handler for ticket lifecycle events.

Every ticket mutation made through this service invalidates the live queue
of the ticket's tenant, so subscribers reload even when the datastore's own
change feed is not connected.
"""

import logging
from typing import Callable

from core.events import TicketEvent
from core.ticket_changes import TicketChangeHub

logger = logging.getLogger(__name__)

TICKET_EVENT_TYPES = (
    "TicketCreated",
    "TicketCompleted",
    "TicketExclusionChanged",
    "TicketUpdated",
    "TicketDeleted",
)


def handle_ticket_changed(hub: TicketChangeHub) -> Callable:
    """
    Factory that returns a handler for any TicketEvent.

    Dependencies are captured at wiring time via closure.
    """

    def handler(event: TicketEvent):
        ticket = event.ticket
        notified = hub.notify(ticket.tenant_id, ticket.id, event.op)
        logger.debug(
            f"{event.__class__.__name__} for ticket #{ticket.ticket_number} reached {notified} queue subscribers"
        )

    return handler
