"""Helpers for the daemon's fixed-interval loops."""

import asyncio


async def wait_for_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleep for up to `timeout` seconds, waking early on the stop signal.

    Returns True when the stop signal has fired.
    """
    try:
        await asyncio.wait_for(stop_event.wait(), timeout)
    except asyncio.TimeoutError:
        pass
    return stop_event.is_set()
