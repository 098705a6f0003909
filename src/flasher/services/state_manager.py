"""Observable session state shared by the flash session and its observers."""

import logging
from typing import Callable, Generic, List, Optional, TypeVar

from flasher.api.models import SessionSnapshot
from flasher.models.status import ErrorCode, Step

T = TypeVar("T")

Subscriber = Callable[[T], None]
Hook = Optional[Callable[[], None]]


class Observable(Generic[T]):
    """Single value that observers can subscribe to.

    A new subscriber is called with the current value right away, then with
    every later value in the order they were set.
    """

    def __init__(self, name: str, initial: T):
        self.name = name
        self._value = initial
        self._subscribers: List[Subscriber] = []
        self.logger = logging.getLogger("flasher.state")

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        """Store value and notify subscribers.

        Note:
            Subscriber failures are logged but not raised to avoid blocking the session
        """
        self._value = value
        for callback in list(self._subscribers):
            self._notify(callback, value)

    def _notify(self, callback: Subscriber, value: T) -> None:
        try:
            callback(value)
        except Exception as e:
            self.logger.error(
                f"Subscriber of {self.name} failed: {e}", exc_info=True
            )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback and replay the current value to it.

        A failing replay is logged like any other notification and the
        subscription is kept.

        Returns:
            Zero-argument function that removes the subscription
        """
        self._subscribers.append(callback)
        self._notify(callback, self._value)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


class SessionState:
    """Singleton holder of everything the session publishes.

    Created once at startup and kept for the life of the process; a new
    process is the only way to get a fresh state.
    """

    _instance: Optional["SessionState"] = None

    def __new__(cls):
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize observables (only once due to singleton)."""
        if self._initialized:
            return

        self.logger = logging.getLogger("flasher.state")

        self.step: Observable[Step] = Observable("step", Step.INITIALIZING)
        self.message: Observable[str] = Observable("message", "")
        self.progress: Observable[float] = Observable("progress", 0.0)
        self.error: Observable[ErrorCode] = Observable("error", ErrorCode.NONE)
        self.connected: Observable[bool] = Observable("connected", False)
        self.serial: Observable[Optional[str]] = Observable("serial", None)
        self.on_continue: Observable[Hook] = Observable("on_continue", None)
        self.on_retry: Observable[Hook] = Observable("on_retry", None)

        self._initialized = True
        self.logger.info("SessionState initialized")

    def advance_to(self, step: Step) -> None:
        """Move to a later step.

        Raises:
            ValueError: If step is earlier than the current step
        """
        current = self.step.get()
        if step < current:
            raise ValueError(
                f"Step cannot go back from {current.name} to {step.name}"
            )
        self.logger.debug(f"Step: {current.name} -> {step.name}")
        self.step.set(step)

    def set_message(self, message: str = "") -> None:
        if message:
            self.logger.info(message)
        self.message.set(message)

    def snapshot(self) -> SessionSnapshot:
        """Get the plain published fields for GET /progress.

        Returns:
            SessionSnapshot with hooks reduced to availability flags
        """
        return SessionSnapshot(
            step=self.step.get(),
            message=self.message.get(),
            progress=self.progress.get(),
            error=self.error.get(),
            connected=self.connected.get(),
            serial=self.serial.get(),
            can_continue=self.on_continue.get() is not None,
            can_retry=self.on_retry.get() is not None,
        )
