"""
Future-style values for identifiers a provider assigns later.

Every declared resource hands back deferred values (its id, its name, its
provider-computed attributes). Downstream declarations consume the deferred
values directly; a provider resolves them once the upstream resource exists.
"""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Callable, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class Deferred(Generic[T]):
    """Thin wrapper around ``concurrent.futures.Future`` with chaining."""

    def __init__(self) -> None:
        self._future: Future = Future()

    @classmethod
    def resolved(cls, value: T) -> Deferred[T]:
        deferred: Deferred[T] = cls()
        deferred.resolve(value)
        return deferred

    @classmethod
    def failed(cls, exc: BaseException) -> Deferred[Any]:
        deferred: Deferred[Any] = cls()
        deferred.fail(exc)
        return deferred

    def resolve(self, value: T) -> None:
        self._future.set_result(value)

    def fail(self, exc: BaseException) -> None:
        self._future.set_exception(exc)

    def done(self) -> bool:
        return self._future.done()

    def failure(self) -> Optional[BaseException]:
        """Exception the value failed with, or None. Only valid once done."""
        if not self._future.done():
            return None
        return self._future.exception()

    def result(self, timeout: Optional[float] = None) -> T:
        """
        Block until the value resolves and return it.

        Raises the failure exception when the value failed and
        ``concurrent.futures.TimeoutError`` when ``timeout`` elapses.
        """
        return self._future.result(timeout)

    def add_callback(self, fn: Callable[[Deferred[T]], None]) -> None:
        self._future.add_done_callback(lambda _fut: fn(self))

    def pipe(self, target: Deferred[T]) -> None:
        """Settle ``target`` with whatever this value settles with."""

        def _settle(source: Deferred[T]) -> None:
            exc = source.failure()
            if exc is not None:
                target.fail(exc)
            else:
                target.resolve(source.result())

        self.add_callback(_settle)

    def apply(self, fn: Callable[[T], Any]) -> Deferred[Any]:
        """
        Return a new deferred holding ``fn(value)``.

        If ``fn`` returns a deferred, the result is flattened. Failures of this
        value, and exceptions raised by ``fn``, propagate to the result.
        """
        out: Deferred[Any] = Deferred()

        def _chain(source: Deferred[T]) -> None:
            exc = source.failure()
            if exc is not None:
                out.fail(exc)
                return
            try:
                value = fn(source.result())
            except Exception as err:
                out.fail(err)
                return
            if isinstance(value, Deferred):
                value.pipe(out)
            else:
                out.resolve(value)

        self.add_callback(_chain)
        return out

    @staticmethod
    def all(items: Iterable[Any]) -> Deferred[List[Any]]:
        """
        Gather values into one deferred list.

        Plain values are passed through. The first failure fails the result.
        """
        items = list(items)
        out: Deferred[List[Any]] = Deferred()
        if not items:
            out.resolve([])
            return out
        slots: List[Any] = [None] * len(items)
        remaining = [len(items)]

        def _collector(index: int) -> Callable[[Deferred[Any]], None]:
            def _collect(source: Deferred[Any]) -> None:
                if out.done():
                    return
                exc = source.failure()
                if exc is not None:
                    out.fail(exc)
                    return
                slots[index] = source.result()
                remaining[0] -= 1
                if remaining[0] == 0:
                    out.resolve(list(slots))

            return _collect

        for index, item in enumerate(items):
            deferred = item if isinstance(item, Deferred) else Deferred.resolved(item)
            deferred.add_callback(_collector(index))
        return out

    @staticmethod
    def unwrap(value: Any) -> Deferred[Any]:
        """Resolve every deferred nested inside dicts, lists and tuples."""
        if isinstance(value, Deferred):
            return value.apply(Deferred.unwrap)
        if isinstance(value, dict):
            keys = list(value.keys())
            gathered = Deferred.all(Deferred.unwrap(value[key]) for key in keys)
            return gathered.apply(lambda resolved: dict(zip(keys, resolved)))
        if isinstance(value, (list, tuple)):
            kind = type(value)
            gathered = Deferred.all(Deferred.unwrap(item) for item in value)
            return gathered.apply(lambda resolved: kind(resolved))
        return Deferred.resolved(value)

    def __repr__(self) -> str:
        if not self._future.done():
            state = "pending"
        elif self._future.exception() is not None:
            state = f"failed: {self._future.exception()!r}"
        else:
            state = f"resolved: {self._future.result()!r}"
        return f"<Deferred {state}>"
