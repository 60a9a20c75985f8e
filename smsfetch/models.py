"""Pydantic models for settings layers, resolved settings and provider messages."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_UNSIGNED = re.compile(r"^[0-9]+$")


class BaseModelWithConfig(BaseModel):
    """Base model enabling alias population and forbidding silent data loss."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


def _coerce_watermark(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not _UNSIGNED.match(text):
            raise ValueError(f"must be a single unsigned integer, got {value!r}")
        return int(text)
    return value


def _coerce_number_to_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class SettingsLayer(BaseModelWithConfig):
    """One configuration source. Unset fields leave lower layers in place."""

    config_path: Optional[str] = Field(default=None, validation_alias=AliasChoices("config_path", "config"))
    username: Optional[str] = None
    password: Optional[str] = None
    did: Optional[str] = None
    lockfile_path: Optional[str] = Field(default=None, validation_alias=AliasChoices("lockfile_path", "lockfile"))
    inbound_handler: Optional[str] = Field(default=None, validation_alias=AliasChoices("inbound_handler", "inbound"))
    outbound_handler: Optional[str] = Field(default=None, validation_alias=AliasChoices("outbound_handler", "outbound"))
    new_only: Optional[bool] = None
    print_mode: Optional[bool] = Field(default=None, validation_alias=AliasChoices("print_mode", "print"))
    latest_watermark: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("latest_watermark", "latest")
    )
    direction_filter: Optional[str] = Field(default=None, validation_alias=AliasChoices("direction_filter", "direction"))

    @field_validator("latest_watermark", mode="before")
    @classmethod
    def _parse_watermark(cls, value: Any) -> Any:
        return _coerce_watermark(value)

    @field_validator("did", mode="before")
    @classmethod
    def _did_as_text(cls, value: Any) -> Any:
        return _coerce_number_to_str(value)

    def overlay(self) -> Dict[str, Any]:
        """Fields this layer actually sets, keyed by field name."""
        return self.model_dump(exclude_none=True)


class Settings(BaseModelWithConfig):
    """Resolved settings for one run. Frozen once the merge completes."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    config_path: str
    username: str
    password: str
    did: str
    lockfile_path: str
    inbound_handler: str
    outbound_handler: str
    new_only: bool = False
    print_mode: bool = False
    latest_watermark: Optional[int] = Field(default=None, ge=0)
    direction_filter: Optional[str] = None


class Message(BaseModel):
    """Single SMS record as returned by getSMS."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int
    timestamp: str = Field(default="", validation_alias=AliasChoices("date", "timestamp"))
    body: str = Field(default="", validation_alias=AliasChoices("message", "body"))
    type_flag: str = Field(validation_alias=AliasChoices("type", "type_flag"))
    counterparty: str = Field(default="", validation_alias=AliasChoices("contact", "counterparty"))
    owned_number: str = Field(default="", validation_alias=AliasChoices("did", "owned_number"))

    @field_validator("type_flag", "counterparty", "owned_number", mode="before")
    @classmethod
    def _number_as_text(cls, value: Any) -> Any:
        return _coerce_number_to_str(value)

    @property
    def direction(self) -> str:
        return "inbound" if self.type_flag.strip() == "1" else "outbound"

    def to_payload(self) -> Dict[str, str]:
        if self.direction == "inbound":
            sender, recipient = self.counterparty, self.owned_number
        else:
            sender, recipient = self.owned_number, self.counterparty
        return {
            "id": str(self.id),
            "date": self.timestamp,
            "message": self.body,
            "type": self.direction,
            "sender": sender,
            "recipient": recipient,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False, separators=(",", ":"))
