"""
Helpers for calling user code from the session's event loop.
"""

import inspect
from typing import Any, Callable

from asgiref.sync import async_to_sync, sync_to_async


async def call_handler(handler: Callable, *args) -> Any:
    """
    Call a view or hook method, handling both sync and async callables.

    Coroutine functions are awaited directly; plain callables run in a
    worker thread through sync_to_async so they may touch the ORM.
    """
    if inspect.iscoroutinefunction(handler):
        return await handler(*args)
    result = await sync_to_async(handler)(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def call_handler_sync(handler: Callable, *args) -> Any:
    """Synchronous counterpart of call_handler for the HTTP render."""
    if inspect.iscoroutinefunction(handler):
        return async_to_sync(handler)(*args)
    return handler(*args)
