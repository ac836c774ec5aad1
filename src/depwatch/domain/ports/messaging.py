"""Port for publishing RPC responses onto the message bus."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ResponsePublisher(Protocol):
    def publish(self, topic: str, key: str, message: bytes) -> None: ...


__all__ = ["ResponsePublisher"]
