# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
from typing import Any

from pydantic import BaseModel, Field


def _unwrap(value: Any) -> Any:
    # ORCID wraps scalar date parts as {"value": "2020"}.
    if isinstance(value, dict):
        return value.get("value")
    return value


class PartialDate(BaseModel):
    """A date with optional month and day precision, as ORCID reports it."""

    year: int | None = None
    month: int | None = None
    day: int | None = None

    @classmethod
    def from_upstream(cls, raw: dict[str, Any] | None) -> "PartialDate":
        """Build a PartialDate from plain or ``{"value": ...}`` wrapped parts."""
        if not raw:
            return cls()
        parts = {}
        for key in ("year", "month", "day"):
            value = _unwrap(raw.get(key))
            if value in (None, ""):
                continue
            try:
                parts[key] = int(value)
            except (TypeError, ValueError):
                continue
        return cls(**parts)

    def format(self) -> str | None:
        """Render with the highest precision available, or None."""
        if self.year is None:
            return None
        if self.month is not None and self.day is not None:
            return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"
        if self.month is not None:
            return f"{self.year:04d}-{self.month:02d}"
        return f"{self.year:04d}"


class AffiliationEntry(BaseModel):
    organization: str = "Unknown"
    role: str = "Not specified"
    department: str | None = None
    start_date: str | None = None
    end_date: str | None = None


class WorkSummary(BaseModel):
    title: str = "Untitled"
    type: str = "Publication"
    publication_date: str | None = None
    journal: str | None = None
    url: str | None = None


class CanonicalResearcherProfile(BaseModel):
    """Pydantic model for a normalized ORCID researcher.

    Profiles built from a search stub only carry a name and an affiliation
    summary (``detailed`` is False); full-record profiles fill every field.
    """

    orcid: str
    name: str
    biography: str | None = None
    keywords: list[str] = Field(default_factory=list)
    affiliations: list[AffiliationEntry] = Field(default_factory=list)
    education: list[AffiliationEntry] = Field(default_factory=list)
    publications: list[WorkSummary] = Field(default_factory=list, max_length=10)
    publication_count: int = 0
    affiliation: str = "Not specified"
    url: str
    detailed: bool = False
