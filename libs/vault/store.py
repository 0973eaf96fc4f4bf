"""
Thread-safe hierarchical store for fetched secrets.

Addresses are dotted paths ("database.creds"); "." is the root. Writes
deep-merge into the existing value at the address instead of replacing it,
and writes at the root merge into the top level. Reads hand out deep copies
so callers can never mutate cached state by reference.

Security Properties:
    - In-memory only (NO disk persistence)
    - Values never logged (only addresses)
    - Entries are removed only by clear() on client teardown

Example:
    >>> store = SecretStore()
    >>> store.merge(".", {"foo": "bar"})
    >>> store.merge("bar", {"bar": "baz"})
    >>> store.get()
    {'foo': 'bar', 'bar': {'bar': 'baz'}}
"""

import copy
import threading
from collections.abc import Mapping
from typing import Any

from libs.vault.schemas import ROOT_ADDRESS


def deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge ``source`` into ``target`` in place and return ``target``.

    Nested mappings merge recursively; any other value (including lists)
    replaces what was there. Values copied from ``source`` are deep copies.
    """
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            deep_merge(existing, value)
        else:
            target[key] = copy.deepcopy(dict(value) if isinstance(value, Mapping) else value)
    return target


def split_address(address: str) -> list[str]:
    if address == ROOT_ADDRESS:
        return []
    return address.split(".")


class SecretStore:
    """
    Hierarchical secret cache guarded by a threading.Lock.

    The event loop is the only writer, but ``get()`` may be called from other
    threads while a renewal is merging, so both paths take the lock.
    """

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def merge(self, address: str, payload: Mapping[str, Any]) -> Any:
        """Merge ``payload`` at ``address``; returns a deep copy of the merged value."""
        segments = split_address(address)
        with self._lock:
            if not segments:
                deep_merge(self._data, payload)
                return copy.deepcopy(self._data)

            parent = self._data
            for segment in segments[:-1]:
                child = parent.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    parent[segment] = child
                parent = child

            leaf = segments[-1]
            existing = parent.get(leaf)
            if isinstance(existing, dict):
                deep_merge(existing, payload)
            else:
                parent[leaf] = deep_merge({}, payload)
            return copy.deepcopy(parent[leaf])

    def get(self, address: str | None = None) -> Any:
        """Deep copy of the value at ``address`` (whole store if omitted), or None."""
        with self._lock:
            if address is None:
                return copy.deepcopy(self._data)
            node: Any = self._data
            for segment in split_address(address):
                if not isinstance(node, dict) or segment not in node:
                    return None
                node = node[segment]
            return copy.deepcopy(node)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and self.get(address) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
