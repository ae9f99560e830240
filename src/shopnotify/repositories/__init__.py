"""Storage seam for shopnotify.

Callers go through the protocols in ``protocols.py``. In-memory stores
answer synchronously while the SQLAlchemy repositories return coroutines,
so engine code wraps every store call in ``resolve()``.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, TypeVar

T = TypeVar("T")


async def resolve(value: T | Awaitable[T]) -> T:
    """Await a value if it is awaitable, otherwise return it directly.

    Lets the dispatcher and scheduler call either backend uniformly:
        settings = await resolve(store.get_settings())
    """
    if inspect.isawaitable(value):
        return await value  # type: ignore[return-value]
    return value  # type: ignore[return-value]
