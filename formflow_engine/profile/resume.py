"""Resume/profile data and the flat auto-fill map derived from it."""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from formflow_engine.core.types import KeyValueStore

logger = logging.getLogger(__name__)

RESUME_KEY = "resume_data"


class Address(BaseModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""


class PersonalInfo(BaseModel):
    first_name: str
    last_name: str
    email: str
    phone: str = ""
    address: Address = Field(default_factory=Address)
    linkedin: str = ""
    portfolio: str = ""
    github: str = ""


class WorkExperience(BaseModel):
    title: str
    company: str
    description: str = ""


class Education(BaseModel):
    degree: str
    school: str
    graduation_date: str = ""


class Skills(BaseModel):
    technical: List[str] = Field(default_factory=list)
    programming: List[str] = Field(default_factory=list)


class SalaryExpectations(BaseModel):
    minimum: Optional[int] = None
    maximum: Optional[int] = None


class Availability(BaseModel):
    start_date: str = ""
    remote: bool = True
    relocation: bool = False
    travel: str = ""


class ProfessionalInfo(BaseModel):
    current_title: str = ""
    current_company: str = ""
    total_experience: str = ""
    summary: str = ""
    work_experience: List[WorkExperience] = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    skills: Skills = Field(default_factory=Skills)
    salary_expectations: SalaryExpectations = Field(default_factory=SalaryExpectations)
    availability: Availability = Field(default_factory=Availability)


class ResumeData(BaseModel):
    personal_info: PersonalInfo
    professional: ProfessionalInfo = Field(default_factory=ProfessionalInfo)
    cover_letter_template: str = ""

    def auto_fill_map(self) -> Dict[str, str]:
        """Flatten into semantic field name -> string value."""

        personal = self.personal_info
        professional = self.professional
        latest_job = professional.work_experience[0] if professional.work_experience else None
        latest_school = professional.education[0] if professional.education else None
        salary = professional.salary_expectations
        availability = professional.availability
        return {
            "first_name": personal.first_name,
            "last_name": personal.last_name,
            "email": personal.email,
            "phone": personal.phone,
            "address": personal.address.street,
            "city": personal.address.city,
            "state": personal.address.state,
            "zip_code": personal.address.zip_code,
            "country": personal.address.country,
            "linkedin": personal.linkedin,
            "portfolio": personal.portfolio,
            "github": personal.github,
            "current_title": professional.current_title,
            "current_company": professional.current_company,
            "experience_years": professional.total_experience,
            "summary": professional.summary,
            "previous_title": latest_job.title if latest_job else "",
            "previous_company": latest_job.company if latest_job else "",
            "previous_description": latest_job.description if latest_job else "",
            "degree": latest_school.degree if latest_school else "",
            "school": latest_school.school if latest_school else "",
            "graduation_date": latest_school.graduation_date if latest_school else "",
            "technical_skills": ", ".join(professional.skills.technical),
            "programming_languages": ", ".join(professional.skills.programming),
            "salary_min": str(salary.minimum) if salary.minimum is not None else "",
            "salary_max": str(salary.maximum) if salary.maximum is not None else "",
            "salary_expectation": _salary_text(salary),
            "start_date": availability.start_date,
            "remote_work": "Yes" if availability.remote else "No",
            "willing_to_relocate": "Yes" if availability.relocation else "No",
            "travel_percentage": availability.travel,
            "cover_letter": self.cover_letter_template,
        }


def _salary_text(salary: SalaryExpectations) -> str:
    if salary.minimum is not None and salary.maximum is not None:
        return f"{salary.minimum}-{salary.maximum}"
    if salary.minimum is not None:
        return str(salary.minimum)
    return ""


class StoredProfileProvider:
    """Reads ``resume_data`` from the key-value store."""

    def __init__(self, store: KeyValueStore, *, key: str = RESUME_KEY) -> None:
        self.store = store
        self.key = key

    async def load(self) -> Optional[ResumeData]:
        raw = await self.store.get(self.key)
        if not raw:
            return None
        try:
            return ResumeData.model_validate(raw)
        except ValidationError:
            logger.warning("stored resume data is invalid", exc_info=True)
            return None

    async def save(self, resume: ResumeData) -> None:
        await self.store.set(self.key, resume.model_dump(mode="json"))

    async def get_auto_fill_data(self) -> Optional[Dict[str, str]]:
        resume = await self.load()
        return resume.auto_fill_map() if resume else None


class StaticProfileProvider:
    def __init__(self, data: Mapping[str, str] | None) -> None:
        self._data = dict(data) if data is not None else None

    async def get_auto_fill_data(self) -> Optional[Dict[str, str]]:
        return dict(self._data) if self._data is not None else None


__all__ = [
    "RESUME_KEY",
    "ResumeData",
    "PersonalInfo",
    "ProfessionalInfo",
    "StoredProfileProvider",
    "StaticProfileProvider",
]
