"""Message bus subscriptions for reservation events."""

import logging

from shared.application.message_bus import MessageBus

from .domain.events import RefundFailed

logger = logging.getLogger(__name__)

# Seconds before the n-th retry: 1m, 2m, 4m, ...
REFUND_RETRY_BASE_DELAY = 60


def schedule_refund_retry(event: RefundFailed) -> None:
    from .tasks import retry_refund

    countdown = REFUND_RETRY_BASE_DELAY * (2 ** max(event.attempts - 1, 0))
    logger.info(f"Scheduling refund retry for payment {event.payment_id} in {countdown}s")
    retry_refund.apply_async(args=[event.payment_id], countdown=countdown)


def register_handlers(bus: MessageBus) -> None:
    bus.register_event_handler(RefundFailed, schedule_refund_retry)
