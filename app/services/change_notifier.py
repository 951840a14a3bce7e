import logging
from typing import Iterable, Protocol

from app.schemas.event import PointsChangedEvent


logger = logging.getLogger(__name__)


class ChangeNotifier(Protocol):
    def notify(self, event: PointsChangedEvent) -> None: ...


class LoggingNotifier:
    def notify(self, event: PointsChangedEvent) -> None:
        logger.info(
            "points changed",
            extra={
                "event_type": event.type,
                "customer_id": event.customerId,
                "program_id": event.programId,
                "card_id": event.cardId,
                "points_added": event.pointsAdded,
                "new_balance": event.newBalance,
            },
        )


class CompositeNotifier:
    """Fan an event out to several handlers; one failing handler does not stop the rest."""

    def __init__(self, notifiers: Iterable[ChangeNotifier]):
        self.notifiers = list(notifiers)

    def notify(self, event: PointsChangedEvent) -> None:
        for notifier in self.notifiers:
            try:
                notifier.notify(event)
            except Exception:
                logger.exception(
                    "notification handler failed",
                    extra={"handler": type(notifier).__name__, "card_id": event.cardId},
                )


def publish(notifier: ChangeNotifier | None, event: PointsChangedEvent) -> None:
    """Best-effort delivery after commit. Never raises."""
    notifier = notifier or LoggingNotifier()
    try:
        notifier.notify(event)
    except Exception:
        logger.exception(
            "change notification failed",
            extra={
                "event_type": event.type,
                "customer_id": event.customerId,
                "program_id": event.programId,
                "card_id": event.cardId,
            },
        )
