"""Handlers for the input service's bus routes."""

from __future__ import annotations

import base64
import binascii
from http import HTTPStatus
from logging import getLogger
from typing import TYPE_CHECKING, Final

from depwatch.domain.ingestion import IngestRequest

from .schema import ApiResponse

if TYPE_CHECKING:
    from datetime import datetime

    from depwatch.domain.ingestion import IngestionService

    from .dispatcher import RpcDispatcher
    from .schema import ApiRequest

log = getLogger(__name__)

API_PATH_PREFIX: Final[str] = "/api/v1"
INPUT_GIT_PATH: Final[str] = f"{API_PATH_PREFIX}/input/git"
PING_PATH: Final[str] = f"{API_PATH_PREFIX}/ping"

DATASOURCE_EVENT_KEY: Final[str] = "datasourceEvent"
EVENT_FILE_DATA_KEY: Final[str] = "eventFileData"
EVENT_FILE_NAME_KEY: Final[str] = "eventFileName"


def _bad_request(request: ApiRequest, received_at: datetime, message: str) -> ApiResponse:
    return ApiResponse(
        txid=request.txid,
        code=HTTPStatus.BAD_REQUEST.value,
        request_received_at=received_at.isoformat(),
        server_message=message,
    )


def ping(request: ApiRequest, received_at: datetime) -> ApiResponse:
    return ApiResponse(
        txid=request.txid,
        code=HTTPStatus.OK.value,
        request_received_at=received_at.isoformat(),
        server_message="pong",
    )


class GitInputHandler:
    """Decode a git event submitted over the bus and hand it to the ingestion service."""

    def __init__(self, service: IngestionService) -> None:
        self._service = service

    def __call__(self, request: ApiRequest, received_at: datetime) -> ApiResponse:
        identifier = request.data.get(DATASOURCE_EVENT_KEY)
        encoded = request.data.get(EVENT_FILE_DATA_KEY)
        if not isinstance(identifier, str) or not identifier:
            return _bad_request(request, received_at, f"missing {DATASOURCE_EVENT_KEY}")
        if not isinstance(encoded, str) or not encoded:
            return _bad_request(request, received_at, f"missing {EVENT_FILE_DATA_KEY}")
        try:
            archive = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            return _bad_request(request, received_at, f"{EVENT_FILE_DATA_KEY} is not base64")

        filename = request.data.get(EVENT_FILE_NAME_KEY)
        result = self._service.ingest(
            IngestRequest(
                identifier=identifier,
                archive=archive,
                filename=filename if isinstance(filename, str) else None,
            )
        )
        log.info("Ingestion of %s finished with %d", identifier, result.code)
        return ApiResponse(
            txid=request.txid,
            code=result.code,
            request_received_at=result.received_at.isoformat(),
            data={"eventTxid": str(result.txid)},
            server_message=result.message,
        )


def register_input_routes(dispatcher: RpcDispatcher, service: IngestionService) -> None:
    dispatcher.register("POST", INPUT_GIT_PATH, GitInputHandler(service))
    dispatcher.register("GET", PING_PATH, ping)


__all__ = [
    "INPUT_GIT_PATH",
    "PING_PATH",
    "GitInputHandler",
    "ping",
    "register_input_routes",
]
