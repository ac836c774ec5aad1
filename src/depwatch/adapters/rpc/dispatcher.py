"""Route bus requests to registered handlers and publish their responses."""

from __future__ import annotations

from datetime import UTC, datetime
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from .schema import ApiRequest, ApiResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from depwatch.domain.ports.messaging import ResponsePublisher

log = getLogger(__name__)

type RpcHandler = Callable[[ApiRequest, datetime], ApiResponse]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RpcDispatcher:
    """Explicit ``(verb, resource) -> handler`` registry.

    Every request gets exactly one response on its response topic: the handler's,
    404 for unknown routes or 500 when the handler raises.
    """

    def __init__(
        self,
        *,
        service_name: str,
        publisher: ResponsePublisher,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._service_name = service_name
        self._publisher = publisher
        self._clock = clock
        self._routes: dict[tuple[str, str], RpcHandler] = {}

    def register(self, verb: str, resource: str, handler: RpcHandler) -> None:
        key = (verb.upper(), resource)
        if key in self._routes:
            raise ValueError(f"handler already registered for {key[0]} {key[1]}")
        self._routes[key] = handler
        log.debug("Registered RPC handler for %s %s", *key)

    @property
    def routes(self) -> frozenset[tuple[str, str]]:
        return frozenset(self._routes)

    def dispatch(self, request: ApiRequest) -> ApiResponse:
        received_at = self._clock()
        handler = self._routes.get((request.verb, request.uri))
        if handler is None:
            log.warning("No handler for %s", request.resource_signature)
            response = self._bare_response(request, HTTPStatus.NOT_FOUND, received_at)
        else:
            try:
                response = handler(request, received_at)
            except Exception:
                log.exception("Handler for %s failed", request.resource_signature)
                response = self._bare_response(
                    request, HTTPStatus.INTERNAL_SERVER_ERROR, received_at
                )
            else:
                response.responder_name = self._service_name
                response.responder_resource_signature = request.resource_signature

        self._publisher.publish(
            request.response_topic_name, str(request.txid), response.to_message()
        )
        return response

    def handle_message(self, message: bytes | str) -> ApiResponse | None:
        """Decode a raw bus message and dispatch it; undecodable messages are dropped."""

        try:
            request = ApiRequest.model_validate_json(message)
        except ValidationError:
            log.warning("Dropping undecodable RPC request", exc_info=True)
            return None
        log.info("received apiRequest message: %s %s", request.verb, request.uri)
        return self.dispatch(request)

    def _bare_response(
        self, request: ApiRequest, status: HTTPStatus, received_at: datetime
    ) -> ApiResponse:
        return ApiResponse(
            txid=request.txid,
            responder_name=self._service_name,
            responder_resource_signature=request.resource_signature,
            code=status.value,
            request_received_at=received_at.isoformat(),
        )


__all__ = ["RpcDispatcher", "RpcHandler"]
