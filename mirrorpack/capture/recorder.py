"""Recording engine: observe a live callback-based API and log what happens."""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Sequence

from mirrorpack.core.codec import is_callback, same_function
from mirrorpack.core.method_tree import build_method_tree, normalize_method_paths
from mirrorpack.core.models import (
    ArgumentList,
    Call,
    CallbackInvocation,
    CallbackRef,
    CallReturn,
    Event,
    ReturnValue,
)
from mirrorpack.core.types import KIND_FIELD
from mirrorpack.plugins.base import RecordedEvent, RecordStartEvent
from mirrorpack.plugins.manager import PluginManager
from mirrorpack.plugins.runtime import resolve_plugin_manager
from mirrorpack.replay.checker import Checker
from mirrorpack.replay.scheduler import Scheduler

logger = logging.getLogger(__name__)


class Recorder:
    """Wraps the allow-listed methods of a live API and records every call.

    Use ``recorder.api`` in place of the real API. Calls go through to the
    real methods; callbacks handed to them are wrapped so their invocations
    are recorded too. Arguments and return values are copied when the call
    happens, so the program may reuse its buffers afterwards.
    """

    def __init__(
        self,
        api: Any,
        methods: Sequence[str],
        *,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self.methods = normalize_method_paths(methods)
        self._events: list[Event] = []
        self._calls: list[Call] = []
        # functions can be unhashable (bound methods of unhashable objects)
        self._callback_wrappers: list[tuple[Callable[..., Any], Callable[..., Any]]] = []
        self._plugins = resolve_plugin_manager(plugin_manager)

        self.api = build_method_tree(self.methods, self._wrap_method, api)

        self._plugins.emit(RecordStartEvent(methods=self.methods))
        logger.debug("recording %d method(s): %s", len(self.methods), ", ".join(self.methods))

    @property
    def events(self) -> tuple[Event, ...]:
        return tuple(self._events)

    def calls(self) -> list[Call]:
        return list(self._calls)

    def to_dict(self) -> dict[str, Any]:
        """Encode the recording as a checker document."""
        calls: list[Call] = []
        log: list[dict[str, Any]] = []
        for event in self._events:
            if isinstance(event, Call):
                calls.append(event)
            log.append(event.to_dict(calls))
        return {KIND_FIELD: "checker", "log": log, "methods": list(self.methods)}

    def checker(
        self,
        scheduler: Scheduler | None = None,
        *,
        plugin_manager: PluginManager | None = None,
    ) -> Checker:
        """Checker that replays what has been recorded so far."""
        return Checker.from_dict(self.to_dict(), scheduler, plugin_manager=plugin_manager)

    def _wrap_method(self, path: str, target: Callable[..., Any], parent: Any) -> Callable[..., Any]:
        @wraps(target)
        def recorded(*args: Any, **kwargs: Any) -> Any:
            return self._record_call(path, target, args, kwargs)

        return recorded

    def _record_call(
        self,
        name: str,
        target: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        call = Call(name=name, arguments=ArgumentList.from_live(args, kwargs))
        self._calls.append(call)
        call_index = len(self._calls) - 1
        self._append(call, call_index=call_index)

        live_args = tuple(self._instrument(value) for value in args)
        live_kwargs = {key: self._instrument(value) for key, value in kwargs.items()}
        try:
            result = target(*live_args, **live_kwargs)
        except Exception:
            logger.warning(
                "recorded method %s raised; call #%d has no return and the log "
                "cannot be replayed",
                name,
                call_index,
            )
            raise

        self._append(
            CallReturn(call=call, value=ReturnValue.from_live(result)),
            call_index=call_index,
        )
        return result

    def _instrument(self, value: Any) -> Any:
        if not is_callback(value):
            return value
        return self._wrap_callback(value)

    def _wrap_callback(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        for original, wrapper in self._callback_wrappers:
            if same_function(original, fn):
                return wrapper

        @wraps(fn)
        def recorded_callback(*args: Any, **kwargs: Any) -> Any:
            self._append(
                CallbackInvocation(
                    callback=CallbackRef(fn=fn),
                    arguments=ArgumentList.from_live(args, kwargs),
                )
            )
            return fn(*args, **kwargs)

        self._callback_wrappers.append((fn, recorded_callback))
        return recorded_callback

    def _append(self, event: Event, *, call_index: int | None = None) -> None:
        position = len(self._events)
        self._events.append(event)
        if isinstance(event, CallbackInvocation):
            origin = event.callback.origin(self._calls)
            call_index = origin[0] if origin is not None else None
        method = self._calls[call_index].name if call_index is not None else None
        logger.debug("recorded #%d %s %s", position, event.kind, method or "")
        self._plugins.emit(
            RecordedEvent(position=position, kind=event.kind, method=method, call_index=call_index)
        )
