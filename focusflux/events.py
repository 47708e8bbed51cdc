from enum import Enum, auto
from typing import Callable, Dict, Any, Optional
import threading
import uuid
import weakref
import inspect
import logging

logger = logging.getLogger(__name__)


class AppEvent(Enum):
    """Application-wide events for the observer pattern."""
    TASK_CREATED = auto()
    TASK_UPDATED = auto()
    TASK_COMPLETED = auto()
    TASK_UNCOMPLETED = auto()
    TASK_DELETED = auto()
    TASKS_LOADED = auto()
    SETTINGS_CHANGED = auto()
    REMINDER_SCHEDULED = auto()
    REMINDER_CANCELLED = auto()
    REMINDER_FIRED = auto()
    NOTIFICATION_DELIVERED = auto()
    NOTIFICATION_ACTIVATED = auto()


class Subscription:
    """Handle returned by EventBus.subscribe().

    When the callback is held strongly (lambdas, closures, strong=True) the
    Subscription keeps it alive, so store it and call unsubscribe() when done.
    """

    def __init__(
        self,
        event_bus: "EventBus",
        event: AppEvent,
        subscription_id: str,
        strong_ref: Optional[Callable[[Any], None]] = None,
    ):
        self._event_bus = event_bus
        self._event = event
        self._subscription_id = subscription_id
        self._active = True
        self._strong_ref = strong_ref

    @property
    def id(self) -> str:
        return self._subscription_id

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._event_bus._unsubscribe_by_id(self._event, self._subscription_id)
            self._active = False
            self._strong_ref = None


class _CallbackRef:
    """Weak reference to a subscriber callback.

    Bound methods go through WeakMethod so a destroyed service drops its
    subscriptions on its own.
    """

    def __init__(
        self,
        callback: Callable[[Any], None],
        on_dead: Optional[Callable[[], None]] = None,
        event_name: str = "unknown",
    ):
        self._on_dead = on_dead
        self._event_name = event_name
        self._callback_repr = repr(callback)

        if inspect.ismethod(callback):
            self._ref = weakref.WeakMethod(callback, self._invoke_on_dead)
        else:
            try:
                self._ref = weakref.ref(callback, self._invoke_on_dead)
            except TypeError:
                # Built-ins can't be weakly referenced
                self._ref = lambda: callback

    def _invoke_on_dead(self, _ref) -> None:
        logger.debug(
            f"EventBus: subscription to {self._event_name} was garbage collected "
            f"(callback was {self._callback_repr})"
        )
        if self._on_dead:
            self._on_dead()

    def __call__(self) -> Optional[Callable[[Any], None]]:
        return self._ref()


class EventBus:
    """Event bus for decoupled communication between the task layer and reminders.

    Not a process-wide singleton: the reminder container owns one instance, and
    tests create their own.
    """

    def __init__(self) -> None:
        self._listeners: Dict[AppEvent, Dict[str, _CallbackRef]] = {}
        self._lock = threading.Lock()

    def subscribe(
        self,
        event: AppEvent,
        callback: Callable[[Any], None],
        strong: bool = False,
    ) -> Subscription:
        """Subscribe a callback to an event. Returns a Subscription for cleanup.

        Lambdas and closures are always held strongly, otherwise they would be
        collected immediately and the subscription would silently vanish.
        """
        subscription_id = str(uuid.uuid4())

        is_lambda = getattr(callback, "__name__", "") == "<lambda>"
        is_closure = not inspect.ismethod(callback) and getattr(callback, "__closure__", None) is not None
        if (is_lambda or is_closure) and not strong:
            logger.debug(f"EventBus: holding {event.name} subscriber strongly")
            strong = True

        def on_dead():
            self._unsubscribe_by_id(event, subscription_id)

        with self._lock:
            self._listeners.setdefault(event, {})[subscription_id] = _CallbackRef(callback, on_dead, event.name)

        return Subscription(self, event, subscription_id, strong_ref=callback if strong else None)

    def _unsubscribe_by_id(self, event: AppEvent, subscription_id: str) -> None:
        with self._lock:
            listeners = self._listeners.get(event)
            if listeners is not None:
                listeners.pop(subscription_id, None)

    def emit(self, event: AppEvent, data: Any = None) -> None:
        """Emit an event to all subscribers.

        A failing subscriber is logged and does not stop delivery to the rest.
        """
        with self._lock:
            items = list(self._listeners.get(event, {}).items())

        dead_refs = []
        for sub_id, cb_ref in items:
            callback = cb_ref()
            if callback is None:
                dead_refs.append(sub_id)
                continue
            try:
                callback(data)
            except Exception:
                logger.exception(f"Error in event handler for {event.name}")

        for sub_id in dead_refs:
            self._unsubscribe_by_id(event, sub_id)

    def subscriber_count(self, event: AppEvent) -> int:
        with self._lock:
            return len(self._listeners.get(event, {}))

    def clear(self) -> None:
        """Drop every subscription."""
        with self._lock:
            self._listeners.clear()
