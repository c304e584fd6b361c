"""
보험 계약 적재 모델

업로드 파일의 컬럼명(사람이 읽는 이름)을 필드로 매핑합니다.
빈 문자열은 값이 없는 것으로 보고 기본값을 적용합니다.
"""

from datetime import datetime
from typing import Any

import pandas as pd
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

UNKNOWN_AGENT = "Unknown Agent"
UNKNOWN_USER = "Unknown User"
UNKNOWN_PRODUCER = "Unknown Producer"
UNKNOWN_COMPANY = "Unknown Company"
DEFAULT_POLICY_MODE = "Standard"
DEFAULT_POLICY_TYPE = "Individual"
DEFAULT_CATEGORY = "General"
GENDERS = ("Male", "Female", "")


class PolicyRow(BaseModel):
    """업로드 파일의 한 행"""
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    agent_name: str = Field(default=UNKNOWN_AGENT, validation_alias="agent")
    user_name: str = Field(default=UNKNOWN_USER, validation_alias=AliasChoices("firstname", "account_name"))
    user_email: str = Field(validation_alias="email")
    gender: str = Field(default="", validation_alias="gender")
    policy_mode: str = Field(default=DEFAULT_POLICY_MODE, validation_alias="policy_mode")
    producer: str | None = Field(default=None, validation_alias="producer")
    policy_number: str = Field(validation_alias="policy_number")
    premium_amount: float = Field(
        validation_alias=AliasChoices("premium_amount_written", "premium_amount"),
    )
    policy_type: str = Field(default=DEFAULT_POLICY_TYPE, validation_alias="policy_type")
    company_name: str = Field(default=UNKNOWN_COMPANY, validation_alias="company_name")
    category_name: str = Field(default=DEFAULT_CATEGORY, validation_alias="category_name")
    start_date: datetime = Field(validation_alias="policy_start_date")
    end_date: datetime = Field(validation_alias="policy_end_date")
    csr: str = Field(default="", validation_alias="csr")

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        return {
            str(key).strip(): value
            for key, value in data.items()
            if value is not None and not (isinstance(value, str) and not value.strip())
        }

    @field_validator(
        "agent_name", "user_name", "user_email", "gender", "policy_mode", "producer",
        "policy_number", "policy_type", "company_name", "category_name", "csr",
        mode="before",
    )
    @classmethod
    def coerce_text(cls, value: Any) -> Any:
        # 스프레드시트 셀은 숫자로 들어올 수 있음
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value)) if float(value).is_integer() else str(value)
        return value

    @field_validator("user_email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("gender")
    @classmethod
    def check_gender(cls, value: str) -> str:
        if value not in GENDERS:
            raise ValueError("gender must be 'Male', 'Female' or empty")
        return value

    @field_validator("premium_amount", mode="before")
    @classmethod
    def parse_amount(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.replace(",", "").replace("$", "").strip()
        return value

    @field_validator("premium_amount")
    @classmethod
    def check_premium(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Premium amount must be positive")
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_date(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value
        parsed = pd.to_datetime(value)
        if pd.isna(parsed):
            raise ValueError(f"Invalid date: {value!r}")
        return parsed.to_pydatetime()

    @model_validator(mode="after")
    def check_dates(self) -> "PolicyRow":
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

    @property
    def resolved_producer(self) -> str:
        if self.producer:
            return self.producer
        if self.agent_name != UNKNOWN_AGENT:
            return self.agent_name
        return UNKNOWN_PRODUCER


class Entity(BaseModel):
    """자연키로 식별되는 참조 엔티티 (Agent/User/Category/Carrier)"""
    id: int
    key: str


class PolicyRecord(BaseModel):
    """적재된 계약"""
    id: int
    policy_number: str
    agent_id: int
    user_id: int
    category_id: int
    carrier_id: int


class RowError(BaseModel):
    """행 단위 실패 정보"""
    row_number: int
    row: dict[str, Any]
    error: str


class ImportSummary(BaseModel):
    """적재 결과 요약"""
    imported: int = 0
    failed: int = 0
    errors: list[RowError] = Field(default_factory=list)
