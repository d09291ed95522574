"""
Contract Record — structured output of the extraction stage

This is the schema every Structured Extraction Provider must satisfy,
whether it called an LLM or synthesized demo data. Downstream stages
(publishing, status responses) only ever see a validated ContractRecord.

Wire format: camelCase keys (contractTitle, effectiveDate, ...).
Python access: snake_case attributes. Both names are accepted on input.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class PartyRole(str, Enum):
    PROVIDER  = "provider"
    RECIPIENT = "recipient"
    OTHER     = "other"


class Party(_CamelModel):
    name:    str
    role:    PartyRole
    address: str | None = None


class ContractValue(_CamelModel):
    amount:   float | None = None
    currency: str | None   = None


class Obligation(_CamelModel):
    party:       str
    description: str


class ContractRecord(_CamelModel):
    """Key facts extracted from one contract document."""
    contract_title:      str             = Field(..., description="Title or name of the contract")
    contract_number:     str | None      = Field(None, description="Reference number, if present")
    effective_date:      str             = Field(..., description="YYYY-MM-DD")
    expiration_date:     str | None      = Field(None, description="YYYY-MM-DD, if present")
    parties:             list[Party]
    contract_value:      ContractValue | None = None
    key_terms:           list[str]
    obligations:         list[Obligation]
    renewal_terms:       str | None       = None
    termination_clauses: list[str] | None = None
    governing_law:       str | None       = None
    special_provisions:  list[str] | None = None

    def to_wire(self) -> dict:
        """JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
