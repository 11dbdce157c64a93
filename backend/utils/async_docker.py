"""
Thread offloading for blocking Docker SDK calls.

docker-py talks to the daemon synchronously. The snapshot source runs inside
the event loop that also serves the dashboard, so every SDK call goes through
asyncio.to_thread() here instead of being made directly.

    client = await async_docker_call(docker.from_env)
    containers = await async_containers_list(client, sparse=True)
"""

import asyncio
from typing import Any, Callable, List, TypeVar

R = TypeVar('R')


async def async_docker_call(fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
    """Run fn(*args, **kwargs) on the default executor and await its result."""
    return await asyncio.to_thread(fn, *args, **kwargs)


async def async_containers_list(client, **kwargs) -> List:
    """
    Await client.containers.list(**kwargs).

    ignore_removed defaults to True: a container that exits between the list
    call and docker-py's per-container lookup would otherwise raise NotFound
    and fail the whole snapshot.
    """
    kwargs.setdefault('ignore_removed', True)
    return await async_docker_call(client.containers.list, **kwargs)
