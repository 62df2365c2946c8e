from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, ClassVar


if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    CloseAction = Callable[[], object]
    ErrorHandler = Callable[[BaseException], object]


logger = logging.getLogger(__name__)


class ScopeKind(Enum):
    RECORDING = "recording"
    GLOBAL = "global"


def log_close_error(error: BaseException) -> None:
    """Default close-action error handler: log and keep going."""
    logger.exception("Close action failed", exc_info=error)


class DIScope:
    """A lifetime boundary for injected dependencies.

    Dependencies resolved into a scope register close-actions on it. Closing
    the scope runs those actions in registration order, releasing whatever
    the scope kept alive.

    - `with DIScope() as scope:` closes the scope when the block ends.
    - `close()` may be called more than once; later calls do nothing.
    - a failing close-action is handed to `on_error` and does not stop
      the actions registered after it.
    """

    GLOBAL: ClassVar[DIScope]

    def __init__(
        self,
        *,
        on_error: ErrorHandler | None = None,
        _kind: ScopeKind = ScopeKind.RECORDING,
    ) -> None:
        self._kind = _kind
        self._on_error = on_error if on_error is not None else log_close_error
        self._close_actions: list[CloseAction] = []
        self._closed = False
        self._lock = threading.RLock()

    @property
    def kind(self) -> ScopeKind:
        return self._kind

    @property
    def closed(self) -> bool:
        """True once `close()` has been called on a recording scope.

        A closed scope stays usable: resolving into it or registering actions
        afterwards behaves as on a fresh scope, and the next `close()` runs
        those actions. The flag is not reset by that reuse.
        """
        return self._closed

    def on_close(self, action: CloseAction) -> None:
        """Register `action` to run when the scope closes.

        The global scope never closes, so it drops the action.
        """
        if not callable(action):
            msg = f"Close action must be callable, got {type(action).__name__}"
            raise TypeError(msg)

        if self._kind is ScopeKind.GLOBAL:
            return

        with self._lock:
            self._close_actions.append(action)

    def close(self) -> None:
        with self._lock:
            actions = self._close_actions
            self._close_actions = []
            if self._kind is ScopeKind.RECORDING:
                self._closed = True

        if actions:
            logger.debug("Closing %r: running %d close action(s)", self, len(actions))

        # every action runs; the first error raised by the handler surfaces afterwards
        handler_errors: list[Exception] = []
        for action in actions:
            try:
                action()
            except Exception as e:  # noqa: BLE001
                try:
                    self._on_error(e)
                except Exception as handler_error:  # noqa: BLE001
                    handler_errors.append(handler_error)

        if handler_errors:
            raise handler_errors[0]

    def __enter__(self) -> DIScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._kind is ScopeKind.GLOBAL:
            return "DIScope.GLOBAL"
        return f"<DIScope at {id(self):#x}>"


GLOBAL = DIScope(_kind=ScopeKind.GLOBAL)
DIScope.GLOBAL = GLOBAL
