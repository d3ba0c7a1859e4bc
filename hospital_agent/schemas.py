from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

from hospital_agent.constants import Availability


class Location(BaseModel):
    type: str = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(default=None, alias="zipCode")
    country: Optional[str] = None

    model_config = {"populate_by_name": True}

    @field_validator('coordinates')
    @classmethod
    def validate_coordinates(cls, v: List[float]) -> List[float]:
        lng, lat = v
        if not -180 <= lng <= 180 or not -90 <= lat <= 90:
            raise ValueError('Please provide valid longitude and latitude values')
        return v


class Department(BaseModel):
    name: str
    phone: Optional[str] = None


class HospitalCreate(BaseModel):
    hospital_name: str = Field(..., min_length=1, alias="hospitalName")
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=1)
    location: Location
    specialties: List[str] = Field(default_factory=list)
    departments: List[Department] = Field(default_factory=list)
    availability: Availability = Availability.BUSINESS_HOURS
    rating: float = Field(default=0, ge=0, le=5)

    model_config = {"populate_by_name": True}

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if '@' not in v:
            raise ValueError('Invalid email address')
        return v


class SignupRequest(HospitalCreate):
    password: str = Field(..., min_length=8)


class HospitalUpdate(BaseModel):
    hospital_name: Optional[str] = Field(default=None, alias="hospitalName")
    phone: Optional[str] = None
    location: Optional[Location] = None
    specialties: Optional[List[str]] = None
    departments: Optional[List[Department]] = None
    availability: Optional[Availability] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)

    model_config = {"populate_by_name": True}


class LoginRequest(BaseModel):
    email: str
    password: str


class RescheduleRequest(BaseModel):
    new_date: str = Field(..., alias="newDate")
    new_time_slot: str = Field(..., alias="newTimeSlot")

    model_config = {"populate_by_name": True}
