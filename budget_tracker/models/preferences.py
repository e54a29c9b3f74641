"""
User preference model.

Preferences are display settings only. They are loaded from the preference
store and passed explicitly to the presentation layer; the ledger never
consults them.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    TL = "TL"


class Language(str, Enum):
    ENGLISH = "ENG"
    TURKISH = "TR"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


class UserPreferences(BaseModel):
    """Per-user display preferences and notification switches."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    currency: Currency = Currency.USD
    language: Language = Language.ENGLISH
    theme: Theme = Theme.LIGHT

    budget_alerts: bool = Field(
        default=True,
        description="Show an alert when a budget is exceeded"
    )
    bill_reminders: bool = True
    monthly_reports: bool = False
    sync_data: bool = True

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
