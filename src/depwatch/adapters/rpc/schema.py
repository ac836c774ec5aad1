"""Pydantic envelopes exchanged over the message bus."""

from __future__ import annotations

from typing import Any
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RpcBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApiRequest(RpcBaseModel):
    txid: UUID
    verb: str
    uri: str
    data: dict[str, Any] = Field(default_factory=dict)
    response_topic_name: str = Field(alias="responseTopicName")

    @field_validator("verb", mode="before")
    @classmethod
    def _normalize_verb(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def resource_signature(self) -> str:
        return f"{self.verb}_{self.uri}"


class ApiResponse(RpcBaseModel):
    txid: UUID | None = None
    responder_name: str | None = Field(default=None, alias="responderName")
    responder_resource_signature: str | None = Field(
        default=None, alias="responderResourceSignature"
    )
    code: int
    request_received_at: str | None = Field(default=None, alias="requestReceivedAt")
    data: dict[str, Any] = Field(default_factory=dict)
    server_message: str | None = Field(default=None, alias="serverMessage")

    def to_message(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")


__all__ = ["ApiRequest", "ApiResponse"]
