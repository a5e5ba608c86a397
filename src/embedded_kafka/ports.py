"""Broker port planning."""

from __future__ import annotations

import socket
from collections.abc import Sequence
from contextlib import ExitStack

AUTO_ASSIGN = 0


def plan_ports(ports: Sequence[int], count: int) -> tuple[int, ...]:
    """Size a declared port list to the broker count.

    A lone auto-assign sentinel with more than one broker expands to one
    sentinel per broker; every other input is returned unchanged.
    """
    if count > 1 and len(ports) == 1 and ports[0] == AUTO_ASSIGN:
        return (AUTO_ASSIGN,) * count
    return tuple(ports)


def bind_ports(ports: Sequence[int], host: str = "localhost") -> tuple[int, ...]:
    """Resolve every sentinel in *ports* to a distinct free OS-assigned port.

    All probe sockets stay bound until the whole list is resolved, so two
    sentinels never receive the same port.
    """
    resolved: list[int] = []
    with ExitStack() as stack:
        for port in ports:
            if port != AUTO_ASSIGN:
                resolved.append(port)
                continue
            s = stack.enter_context(socket.socket(socket.AF_INET, socket.SOCK_STREAM))
            s.bind((host, 0))
            resolved.append(int(s.getsockname()[1]))
    return tuple(resolved)
