"""
Wire message models for the ledger API.

Message shapes are snake_case JSON objects:
    instantiate: {"owner": "user:admin"}
    execute:     {"record": {"name": ..., "email": ..., "address": ...}}
    query:       {"registration": {"id": 1}}
                 {"list_registrations": {"start_after": 1, "limit": 10}}
    migrate:     {}

Field length bounds are not enforced here; the service reports them
as InvalidLengthError so every transport gets the same error.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models import (
    ContractInfo,
    ListRegistrationsResponse,
    RecordRequest,
    RegistrationResponse,
    Response,
)

MAX_LIMIT_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1


class InstantiateMsg(BaseModel):
    """Initialize the ledger with its owner."""

    model_config = ConfigDict(extra="forbid")

    owner: str = Field(..., description="Principal allowed to record registrations")


class RecordMsg(BaseModel):
    """Registration fields submitted by a caller."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Registrant name (4-128 characters)")
    email: str = Field(..., description="Registrant email (at least 20 characters)")
    address: str = Field(..., description="Free-form address")

    def to_request(self) -> RecordRequest:
        return RecordRequest(name=self.name, email=self.email, address=self.address)


class ExecuteMsg(BaseModel):
    """State-changing message envelope."""

    model_config = ConfigDict(extra="forbid")

    record: RecordMsg = Field(..., description="Store a registration")


class RegistrationQuery(BaseModel):
    """Query one registration by id."""

    model_config = ConfigDict(extra="forbid")

    id: int = Field(..., ge=0, le=MAX_U64, description="Registration id")


class ListRegistrationsQuery(BaseModel):
    """Query a page of registrations."""

    model_config = ConfigDict(extra="forbid")

    start_after: int | None = Field(
        None,
        ge=0,
        le=MAX_U64,
        description="Exclusive lower bound; omit to start from the first",
    )
    limit: int | None = Field(
        None, ge=0, le=MAX_LIMIT_U32, description="Page size (default 30, max 100)"
    )


class QueryMsg(BaseModel):
    """Read-only message envelope. Exactly one variant must be set."""

    model_config = ConfigDict(extra="forbid")

    registration: RegistrationQuery | None = None
    list_registrations: ListRegistrationsQuery | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> QueryMsg:
        variants = [v for v in (self.registration, self.list_registrations) if v is not None]
        if len(variants) != 1:
            raise ValueError("exactly one of 'registration' or 'list_registrations' is required")
        return self


class MigrateMsg(BaseModel):
    """Migration carries no payload."""

    model_config = ConfigDict(extra="forbid")


class RegistrationModel(BaseModel):
    """Registration as returned by queries."""

    id: int
    created: int
    name: str
    email: str
    address: str

    @classmethod
    def from_response(cls, resp: RegistrationResponse) -> RegistrationModel:
        return cls(**resp.to_dict())


class ListRegistrationsModel(BaseModel):
    """Page of registrations."""

    registrations: list[RegistrationModel]

    @classmethod
    def from_response(cls, resp: ListRegistrationsResponse) -> ListRegistrationsModel:
        return cls(
            registrations=[RegistrationModel.from_response(r) for r in resp.registrations]
        )


class Attribute(BaseModel):
    key: str
    value: str


class ExecuteResponseModel(BaseModel):
    """Outcome of a state-changing message."""

    attributes: list[Attribute]
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, resp: Response) -> ExecuteResponseModel:
        return cls(**resp.to_dict())


class ContractInfoModel(BaseModel):
    name: str
    version: str

    @classmethod
    def from_info(cls, info: ContractInfo) -> ContractInfoModel:
        return cls(**info.to_dict())


class ErrorDetail(BaseModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ErrorResponseModel(BaseModel):
    error: ErrorDetail


MESSAGE_MODELS: dict[str, type[BaseModel]] = {
    "instantiate_msg": InstantiateMsg,
    "execute_msg": ExecuteMsg,
    "query_msg": QueryMsg,
    "migrate_msg": MigrateMsg,
    "registration_response": RegistrationModel,
    "list_registrations_response": ListRegistrationsModel,
    "execute_response": ExecuteResponseModel,
    "contract_info_response": ContractInfoModel,
}


def message_schemas() -> dict[str, dict[str, Any]]:
    """Return JSON Schemas for every wire message, keyed by name."""
    return {name: model.model_json_schema() for name, model in MESSAGE_MODELS.items()}
