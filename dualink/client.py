"""Registry of configured clients and their runtime state."""

from __future__ import annotations

import copy
import ipaddress
import logging
from typing import Iterator, Optional

from dualink.ipc import ClientConfig, ClientState, Position

log = logging.getLogger(__name__)


class ClientManager:
    """Holds the config and state of every client, keyed by a reusable handle."""

    def __init__(self) -> None:
        self._slots: dict[int, tuple[ClientConfig, ClientState]] = {}
        self._vacant: list[int] = []
        self._next_handle = 0

    def _items(self) -> Iterator[tuple[int, tuple[ClientConfig, ClientState]]]:
        return iter(sorted(self._slots.items()))

    def clients(self) -> list[tuple[ClientConfig, ClientState]]:
        """Return copies of all clients' config and state."""
        return [copy.deepcopy(entry) for _, entry in self._items()]

    def add_client(self) -> int:
        """Add a client with default settings and return its handle."""
        if self._vacant:
            handle = self._vacant.pop()
        else:
            handle = self._next_handle
            self._next_handle += 1
        self._slots[handle] = (ClientConfig(), ClientState())
        return handle

    def set_config(self, handle: int, config: ClientConfig) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            self._slots[handle] = (config, entry[1])

    def set_state(self, handle: int, state: ClientState) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            self._slots[handle] = (entry[0], state)

    def activate_client(self, handle: int) -> bool:
        """Activate the client; return whether it was inactive before."""
        entry = self._slots.get(handle)
        if entry is None or entry[1].active:
            return False
        entry[1].active = True
        return True

    def deactivate_client(self, handle: int) -> bool:
        """Deactivate the client; return whether it was active before."""
        entry = self._slots.get(handle)
        if entry is None or not entry[1].active:
            return False
        entry[1].active = False
        return True

    def get_client(self, addr: tuple) -> Optional[int]:
        """Find an active client owning the ip of the given socket address."""
        ip = ipaddress.ip_address(addr[0])
        return next(
            (h for h, (_, s) in self._items() if s.active and ip in s.ips),
            None,
        )

    def client_at(self, pos: Position) -> Optional[int]:
        """Return the active client at the given position, if any."""
        return next(
            (h for h, (c, s) in self._items() if s.active and c.pos == pos),
            None,
        )

    def get_hostname(self, handle: int) -> Optional[str]:
        entry = self._slots.get(handle)
        return None if entry is None else entry[0].hostname

    def get_pos(self, handle: int) -> Optional[Position]:
        entry = self._slots.get(handle)
        return None if entry is None else entry[0].pos

    def remove_client(self, handle: int) -> Optional[tuple[ClientConfig, ClientState]]:
        entry = self._slots.pop(handle, None)
        if entry is not None:
            self._vacant.append(handle)
        return entry

    def get_state(self, handle: int) -> Optional[tuple[ClientConfig, ClientState]]:
        entry = self._slots.get(handle)
        return None if entry is None else copy.deepcopy(entry)

    def get_client_states(self) -> list[tuple[int, ClientConfig, ClientState]]:
        return [(h, copy.deepcopy(c), copy.deepcopy(s)) for h, (c, s) in self._items()]

    def set_fix_ips(self, handle: int, fix_ips: list) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            entry[0].fix_ips = list(fix_ips)
        self._update_ips(handle)

    def set_dns_ips(self, handle: int, dns_ips: list) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            entry[1].dns_ips = list(dns_ips)
        self._update_ips(handle)

    def _update_ips(self, handle: int) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            config, state = entry
            state.ips = set(config.fix_ips) | set(state.dns_ips)

    def set_hostname(self, handle: int, hostname: Optional[str]) -> bool:
        """Change the hostname, clearing the active address and dns ips.

        Returns whether the hostname changed.
        """
        entry = self._slots.get(handle)
        if entry is None:
            return False
        config, state = entry
        if config.hostname == hostname:
            return False
        config.hostname = hostname
        state.active_addr = None
        state.dns_ips.clear()
        self._update_ips(handle)
        return True

    def set_port(self, handle: int, port: int) -> None:
        entry = self._slots.get(handle)
        if entry is None or entry[0].port == port:
            return
        config, state = entry
        config.port = port
        if state.active_addr is not None:
            state.active_addr = (state.active_addr[0], port)

    def set_pos(self, handle: int, pos: Position) -> bool:
        """Change the position; return True if the capture must be moved."""
        entry = self._slots.get(handle)
        if entry is None or entry[0].pos == pos:
            return False
        config, state = entry
        log.info("update pos %s %s -> %s", handle, config.pos, pos)
        config.pos = pos
        return state.active

    def set_enter_hook(self, handle: int, enter_hook: Optional[str]) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            entry[0].cmd = enter_hook

    def set_resolving(self, handle: int, status: bool) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            entry[1].resolving = status

    def get_enter_cmd(self, handle: int) -> Optional[str]:
        entry = self._slots.get(handle)
        return None if entry is None else entry[0].cmd

    def active_clients(self) -> list[int]:
        return [h for h, (_, s) in self._items() if s.active]

    def set_active_addr(self, handle: int, addr: Optional[tuple]) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            entry[1].active_addr = addr

    def set_alive(self, handle: int, alive: bool) -> None:
        entry = self._slots.get(handle)
        if entry is not None:
            entry[1].alive = alive

    def active_addr(self, handle: int) -> Optional[tuple]:
        entry = self._slots.get(handle)
        return None if entry is None else entry[1].active_addr

    def alive(self, handle: int) -> bool:
        entry = self._slots.get(handle)
        return entry is not None and entry[1].alive

    def get_port(self, handle: int) -> Optional[int]:
        entry = self._slots.get(handle)
        return None if entry is None else entry[0].port

    def get_ips(self, handle: int) -> Optional[set]:
        entry = self._slots.get(handle)
        return None if entry is None else set(entry[1].ips)