"""Domain models for the lead-capture forms.

Covers contact enquiries, "sell your whisky" submissions and consultation
bookings. ``*Create`` models validate public form posts; ``to_document``
produces the camelCase MongoDB document.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from viticult.utils.dates import ensure_utc, utcnow

# Allowed status values per collection
CONTACT_STATUSES = ("new", "contacted", "in-progress", "converted", "closed")
SELL_WHISKY_STATUSES = ("new", "contacted", "evaluating", "offer-made", "sold", "closed")
CONSULTATION_STATUSES = ("scheduled", "confirmed", "completed", "cancelled", "no-show")

ContactStatus = Literal["new", "contacted", "in-progress", "converted", "closed"]
SellWhiskyStatus = Literal["new", "contacted", "evaluating", "offer-made", "sold", "closed"]
ConsultationStatus = Literal["scheduled", "confirmed", "completed", "cancelled", "no-show"]

InvestmentInterest = Literal["starter", "premium", "exclusive", "not-sure"]
ContactMethod = Literal["email", "phone", "both"]
CaskType = Literal["Ex-Bourbon", "Ex-Sherry", "Virgin Oak", "Refill", "Other"]
PreferredTime = Literal["morning", "afternoon", "evening"]

# Consultation fields an admin may clear by sending null
CLEARABLE_CONSULTATION_FIELDS = ("consultantAssigned", "meetingLink", "notes")
InvestmentBudget = Literal["under-10k", "10k-25k", "25k-50k", "50k-100k", "above-100k"]
InvestmentExperience = Literal["beginner", "intermediate", "experienced", "expert"]
ConsultationInterest = Literal[
    "single-casks", "cask-portfolios", "rare-bottles", "investment-advice", "market-insights"
]


class SubmissionBase(BaseModel):
    """Fields shared by every public form."""
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=30)

    class Config:
        populate_by_name = True
        str_strip_whitespace = True

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("phone")
    @classmethod
    def blank_phone_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    def to_document(self, ip_address: str, user_agent: str) -> Dict[str, Any]:
        """Build the MongoDB document with request metadata and timestamps."""
        now = utcnow()
        document = self.model_dump(by_alias=True)
        document.update({
            "source": "website",
            "ipAddress": ip_address,
            "userAgent": user_agent,
            "createdAt": now,
            "updatedAt": now,
        })
        return document


class ContactCreate(SubmissionBase):
    """Contact form submission.

    Example:
        {"name": "Jane Smith", "email": "jane@example.com",
         "subject": "Cask enquiry", "message": "Tell me more",
         "investmentInterest": "premium"}
    """
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    investment_interest: InvestmentInterest = Field(default="not-sure", alias="investmentInterest")
    investment_purposes: bool = Field(default=False, alias="investmentPurposes")
    own_cask: bool = Field(default=False, alias="ownCask")
    gift_purpose: bool = Field(default=False, alias="giftPurpose")
    other_interest: bool = Field(default=False, alias="otherInterest")
    preferred_contact_method: ContactMethod = Field(default="email", alias="preferredContactMethod")

    def to_document(self, ip_address: str, user_agent: str) -> Dict[str, Any]:
        document = super().to_document(ip_address, user_agent)
        document["status"] = "new"
        return document


class SellWhiskyCreate(SubmissionBase):
    """"Sell your whisky" submission describing a cask."""
    cask_type: CaskType = Field(alias="caskType")
    distillery: str = Field(min_length=1, max_length=100)
    year: str = Field(pattern=r"^(19|20)\d{2}$")
    litres: Optional[str] = Field(default=None, max_length=20)
    abv: Optional[str] = Field(default=None, max_length=20)
    asking_price: Optional[str] = Field(default=None, alias="askingPrice", max_length=50)
    message: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("year", mode="before")
    @classmethod
    def coerce_year(cls, value: Any) -> Any:
        # Forms send the year as a number or a string
        return str(value) if isinstance(value, int) else value

    def to_document(self, ip_address: str, user_agent: str) -> Dict[str, Any]:
        document = super().to_document(ip_address, user_agent)
        document["status"] = "new"
        return document


class ConsultationCreate(SubmissionBase):
    """Consultation booking request."""
    phone: str = Field(min_length=1, max_length=30)
    preferred_date: datetime = Field(alias="preferredDate")
    preferred_time: PreferredTime = Field(alias="preferredTime")
    timezone: str = Field(default="UTC", max_length=64)
    investment_budget: InvestmentBudget = Field(alias="investmentBudget")
    investment_experience: InvestmentExperience = Field(alias="investmentExperience")
    interested_in: List[ConsultationInterest] = Field(alias="interestedIn", min_length=1)
    additional_info: Optional[str] = Field(default=None, alias="additionalInfo", max_length=1000)

    @field_validator("preferred_date")
    @classmethod
    def date_in_future(cls, value: datetime) -> datetime:
        value = ensure_utc(value)
        if value <= utcnow():
            raise ValueError("Preferred date must be in the future")
        return value

    def to_document(self, ip_address: str, user_agent: str) -> Dict[str, Any]:
        document = super().to_document(ip_address, user_agent)
        document.update({"status": "scheduled", "reminderSent": False})
        return document


class StatusUpdate(BaseModel):
    """Admin status change with optional notes."""
    status: str
    notes: Optional[str] = Field(default=None, max_length=2000)


class ConsultationUpdate(BaseModel):
    """Admin update of a consultation booking."""
    status: Optional[ConsultationStatus] = None
    consultant_assigned: Optional[str] = Field(default=None, alias="consultantAssigned", max_length=100)
    meeting_link: Optional[str] = Field(default=None, alias="meetingLink", max_length=500)
    notes: Optional[str] = Field(default=None, max_length=2000)
    preferred_date: Optional[datetime] = Field(default=None, alias="preferredDate")
    preferred_time: Optional[PreferredTime] = Field(default=None, alias="preferredTime")

    class Config:
        populate_by_name = True

    @field_validator("preferred_date")
    @classmethod
    def normalise_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def changes(self) -> Dict[str, Any]:
        """Fields sent in the request, as camelCase keys for ``$set``."""
        return {
            key: value
            for key, value in self.model_dump(by_alias=True, exclude_unset=True).items()
            if value is not None or key in CLEARABLE_CONSULTATION_FIELDS
        }
