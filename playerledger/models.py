"""Pydantic request models for the REST API."""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    # Wire format is camelCase; Python code uses snake_case attributes.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SetupRequest(_CamelModel):
    wallet_address: str
    parent_wallet_address: Optional[str] = None
    username: str


class SyncRequest(_CamelModel):
    wallet_address: str
    parent_wallet_address: Optional[str] = None


class UsernameRequest(_CamelModel):
    wallet_address: str
    username: str


class SpendRequest(_CamelModel):
    wallet_address: str
    # Strict: JSON true or "0.1" must not coerce into an amount.
    amount: Union[StrictInt, StrictFloat]


class ScoreRequest(_CamelModel):
    wallet_address: str
    score: StrictInt
    user_name: str
