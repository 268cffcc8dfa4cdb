from __future__ import annotations

from typing import ContextManager, Optional, Protocol


class KeyValueOps(Protocol):
    def get(self, key: str) -> Optional[dict]: ...
    def set(self, key: str, value: dict) -> None: ...
    def delete(self, key: str) -> bool: ...
    def get_by_prefix(self, prefix: str) -> list[dict]: ...


class KeyValueStore(KeyValueOps, Protocol):
    def transaction(self) -> ContextManager[KeyValueOps]: ...
