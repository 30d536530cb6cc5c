"""Compose `async (context, next)` middleware into a single handler."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Sequence

from warren.app.domain.models import Middleware


def compose(middlewares: Sequence[Middleware]) -> Callable[[Any], Awaitable[None]]:
    """Return a handler running `middlewares` in order; each decides whether to call next()."""
    middlewares = tuple(middlewares)
    for middleware in middlewares:
        if not callable(middleware):
            raise TypeError(f"middleware must be callable, got {middleware!r}")

    async def run(context: Any) -> None:
        index = -1

        async def dispatch(i: int) -> None:
            nonlocal index
            if i <= index:
                raise RuntimeError("next() called multiple times")
            index = i
            if i == len(middlewares):
                return
            await middlewares[i](context, lambda: dispatch(i + 1))

        await dispatch(0)

    return run
