import logging
from typing import Any, Callable, Dict, Iterable, Optional, Set

from focusflux.config import ReminderKind
from focusflux.models.entities import ReconcileResult, ReminderEntity, ReminderKey, ReminderSpec
from focusflux.services.reminder_registry import ReminderRegistry
from focusflux.services.reminder_scheduler import ReminderScheduler

logger = logging.getLogger(__name__)

MetadataFactory = Callable[[ReminderEntity], Dict[str, Any]]


class ReminderReconciler:
    """Brings the registry into agreement with an entity feed.

    Every eligible entity (has a reminder time, not completed) ends up
    scheduled; every other entity in the feed ends up with no reminder.
    Each step is an idempotent schedule or cancel, so running the same pass
    twice, or two passes interleaved, converges on the same registry state.
    """

    def __init__(
        self,
        scheduler: ReminderScheduler,
        registry: ReminderRegistry,
        metadata_factory: Optional[MetadataFactory] = None,
    ) -> None:
        self._scheduler = scheduler
        self._registry = registry
        self._metadata_factory = metadata_factory

    def reconcile(
        self,
        entities: Iterable[ReminderEntity],
        reminders_enabled: bool,
        prune_missing: bool = False,
        kind: Optional[ReminderKind] = None,
    ) -> ReconcileResult:
        """Reconcile reminders for one feed.

        Args:
            entities: Current entities; read-only for the duration of the pass
            reminders_enabled: The user's reminders toggle, read fresh by the caller
            prune_missing: Also cancel reminders in the feed's namespace whose
                entity is no longer in the feed
            kind: Namespace to prune; inferred from the feed when omitted

        Returns:
            ReconcileResult with how many reminders were scheduled out of how
            many entities carry a reminder time.
        """
        entities = list(entities)
        total = sum(1 for entity in entities if entity.has_reminder)

        if prune_missing:
            self._prune(entities, kind)

        if not reminders_enabled:
            cleared = sum(1 for entity in entities if self._scheduler.cancel(entity.key))
            logger.info(f"Reminders disabled: cleared {cleared} reminders ({total} entities with a reminder time)")
            return ReconcileResult(scheduled=0, total=total)

        scheduled = 0
        for entity in entities:
            if not entity.wants_reminder:
                self._scheduler.cancel(entity.key)
                continue
            if self._schedule_entity(entity):
                scheduled += 1

        logger.info(f"Scheduled {scheduled} of {total} reminders")
        return ReconcileResult(scheduled=scheduled, total=total)

    def _schedule_entity(self, entity: ReminderEntity) -> bool:
        """Schedule one entity; a failure here never aborts the pass."""
        try:
            metadata = self._metadata_factory(entity) if self._metadata_factory else {}
            return self._scheduler.schedule(ReminderSpec.from_entity(entity, metadata))
        except (RuntimeError, ValueError, TypeError):
            logger.exception(f"Error scheduling reminder for {entity.key}, skipping")
            return False

    def _prune(self, entities: Iterable[ReminderEntity], kind: Optional[ReminderKind]) -> None:
        feed_keys: Set[ReminderKey] = {entity.key for entity in entities}
        kinds = {kind} if kind is not None else {key.kind for key in feed_keys}
        for namespace in kinds:
            for key in self._registry.keys(namespace):
                if key not in feed_keys:
                    logger.debug(f"Pruning reminder {key}: entity no longer in feed")
                    self._scheduler.cancel(key)
