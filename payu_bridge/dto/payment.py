from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from payu_bridge.utils.canonical import parse_request_amount


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class PersonalInfoIn(CamelModel):
    full_name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    phone: str = Field(min_length=1, max_length=32)
    city: str | None = Field(default=None, max_length=128)
    dob: str | None = Field(default=None, max_length=32)
    heard_from: str | None = Field(default=None, max_length=255)
    preferred_contact: list[str] | None = None

    @field_validator("preferred_contact", mode="before")
    @classmethod
    def wrap_single_contact(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


class InitiatePaymentIn(CamelModel):
    personal_info: PersonalInfoIn | None = None
    course: str = Field(min_length=1, max_length=128)
    amount: str | None = None
    course_data: dict[str, Any] | None = None
    resume_files: list[str] | None = None
    payment_mode: str | None = Field(default=None, max_length=64)

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        # Keep the caller's string form: the request hash is computed over it verbatim.
        text = str(value).strip()
        parse_request_amount(text)
        return text


class PayUParamsOut(BaseModel):
    key: str
    txnid: str
    amount: str
    firstname: str
    email: str
    phone: str
    productinfo: str
    surl: str
    furl: str
    service_provider: str = "payu_paisa"
    udf1: str = ""
    udf2: str = ""
    udf3: str = ""
    udf4: str = ""
    udf5: str = ""
    hash: str


class InitiatePaymentOut(CamelModel):
    payu_params: PayUParamsOut
    payu_url: str
