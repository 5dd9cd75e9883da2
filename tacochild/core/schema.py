"""
JSON schema for relay batches and active-provider exports.

An UpdateBatch is what an off-chain relayer feeds the CLI: operator
bindings and authorization changes from the root chain, plus operators
the coordinator should confirm. ActiveProvidersExport is the snapshot
handed to aggregation or auditing tools.
"""

from typing import List

from pydantic import BaseModel, Field, field_validator

from tacochild.crypto import to_checksum_address
from tacochild.utils.validation import MAX_UINT64, MAX_UINT96


def _checksum(value: str) -> str:
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise ValueError("address must be a 0x-prefixed hex string")
    return to_checksum_address(value)


class OperatorUpdate(BaseModel):
    staking_provider: str
    operator: str

    @field_validator("staking_provider", "operator")
    @classmethod
    def normalize_address(cls, value: str) -> str:
        return _checksum(value)


class AuthorizationUpdate(BaseModel):
    staking_provider: str
    authorized: int = Field(ge=0, le=MAX_UINT96)
    deauthorizing: int = Field(default=0, ge=0, le=MAX_UINT96)
    end_deauthorization: int = Field(default=0, ge=0, le=MAX_UINT64)

    @field_validator("staking_provider")
    @classmethod
    def normalize_address(cls, value: str) -> str:
        return _checksum(value)


class UpdateBatch(BaseModel):
    """Updates applied in order: operators, authorizations, confirmations."""
    operators: List[OperatorUpdate] = Field(default_factory=list)
    authorizations: List[AuthorizationUpdate] = Field(default_factory=list)
    confirmations: List[str] = Field(default_factory=list)

    @field_validator("confirmations")
    @classmethod
    def normalize_confirmations(cls, value: List[str]) -> List[str]:
        return [_checksum(v) for v in value]


class ActiveProviderEntry(BaseModel):
    staking_provider: str
    amount: int


class ActiveProvidersExport(BaseModel):
    registry: str
    timestamp: int
    start_index: int
    max_staking_providers: int
    cohort_duration: int
    total: int
    providers: List[ActiveProviderEntry]
