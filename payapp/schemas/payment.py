"""
Request bodies for /api/payapp. Fields are optional on purpose: required-field
checks live in payapp.services so they answer 400 with a readable message.
PayApp's own parameter names (goodname, goodprice, recvphone, rebillCycleType...)
are accepted as aliases since some front-ends post them directly.
"""
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class PaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: int | None = Field(default=None, validation_alias=AliasChoices("amount", "price"))
    phone: str | None = Field(default=None, validation_alias=AliasChoices("phone", "recvphone"))
    product_name: str | None = Field(
        default=None, validation_alias=AliasChoices("productName", "product_name", "goodname")
    )
    memo: str | None = None
    var1: str | None = None
    var2: str | None = None
    openpaytype: str | None = None  # comma separated pay methods shown on the PayApp page
    skip_cstpage: str | None = None  # "y": skip PayApp's receipt page after paying

    @field_validator("amount", "var1", "var2", "openpaytype", "skip_cstpage", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)


class CancelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    mul_no: str | None = Field(default=None, validation_alias=AliasChoices("mul_no", "mulNo"))
    cancelmemo: str | None = Field(default=None, validation_alias=AliasChoices("cancelmemo", "cancelMemo"))


class RebillRegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: int | None = Field(default=None, validation_alias=AliasChoices("amount", "goodprice"))
    phone: str | None = Field(default=None, validation_alias=AliasChoices("phone", "recvphone"))
    product_name: str | None = Field(
        default=None, validation_alias=AliasChoices("productName", "product_name", "goodname")
    )
    memo: str | None = None
    cycle_type: str | None = Field(
        default=None, validation_alias=AliasChoices("cycleType", "cycle_type", "rebillCycleType")
    )
    cycle_value: int | None = Field(
        default=None, validation_alias=AliasChoices("cycleValue", "cycle_value", "cycleDay")
    )
    expire_date: str | None = Field(
        default=None, validation_alias=AliasChoices("expireDate", "expire_date", "rebillExpire")
    )
    var1: str | None = None
    var2: str | None = None
    openpaytype: str | None = None

    @field_validator("amount", "cycle_type", "cycle_value", "expire_date", "var1", "var2", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="before")
    @classmethod
    def _native_cycle_fields(cls, data: Any) -> Any:
        """rebillCycleMonth / rebillCycleWeek -> cycleValue when no cycleValue was sent."""
        if not isinstance(data, dict):
            return data
        if any(_blank_to_none(data.get(k)) is not None for k in ("cycleValue", "cycle_value", "cycleDay")):
            return data
        for key in ("rebillCycleMonth", "rebillCycleWeek"):
            value = _blank_to_none(data.get(key))
            if value is not None:
                return {**data, "cycleValue": value}
        return data


class RebillControlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rebill_no: str | None = Field(default=None, validation_alias=AliasChoices("rebill_no", "rebillNo"))
