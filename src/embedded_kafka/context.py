"""Named broker bindings per test context, cached by configuration."""

from __future__ import annotations

from collections.abc import Callable, Hashable
from typing import Any

import structlog

from embedded_kafka.errors import RegistrationError

logger = structlog.get_logger()

BROKER_NAME = "embedded_kafka"


class BrokerContext:
    """Singletons registered under fixed names for one test context.

    The context owns what is registered in it: :meth:`close` stops every
    object that has a ``stop()`` method, newest first.
    """

    def __init__(self, key: Hashable | None = None) -> None:
        self.key = key
        self._bindings: dict[str, Any] = {}
        self.closed = False

    def register(self, name: str, obj: Any) -> None:
        if self.closed:
            msg = f"Cannot register '{name}' in a closed context"
            raise RegistrationError(msg)
        if name in self._bindings:
            msg = f"A binding named '{name}' is already registered: {self._bindings[name]!r}"
            raise RegistrationError(msg)
        self._bindings[name] = obj

    def get(self, name: str) -> Any:
        try:
            return self._bindings[name]
        except KeyError:
            msg = f"No binding named '{name}' in this context"
            raise KeyError(msg) from None

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        errors: list[Exception] = []
        for name, obj in reversed(list(self._bindings.items())):
            stop = getattr(obj, "stop", None)
            if stop is None:
                continue
            try:
                stop()
            except Exception as exc:
                logger.error("context.stop_failed", binding=name, error=str(exc))
                errors.append(exc)
        self._bindings.clear()
        logger.info("context.closed", key=repr(self.key))
        if errors:
            raise errors[0]


class ContextCache:
    """Reuses one :class:`BrokerContext` per equal configuration key."""

    def __init__(self) -> None:
        self._contexts: dict[Hashable, BrokerContext] = {}

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._contexts

    def get_or_create(
        self, key: Hashable, customize: Callable[[BrokerContext], Any]
    ) -> BrokerContext:
        """Return the context cached for *key*, building it on a miss.

        When *customize* fails the partially built context is closed and
        nothing is cached.
        """
        context = self._contexts.get(key)
        if context is not None:
            logger.debug("context.reused", key=repr(key))
            return context
        context = BrokerContext(key)
        try:
            customize(context)
        except Exception:
            context.close()
            raise
        self._contexts[key] = context
        logger.info("context.created", key=repr(key))
        return context

    def close(self) -> None:
        errors: list[Exception] = []
        while self._contexts:
            _, context = self._contexts.popitem()
            try:
                context.close()
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]
