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
from pydantic import BaseModel, Field, computed_field

ELIGIBILITY_MAX_CHARS = 500
MAX_LOCATIONS = 5


class CanonicalTrial(BaseModel):
    """Pydantic model for a normalized ClinicalTrials.gov study.

    Every field has a stable default, so a sparse upstream record still
    produces a complete trial.
    """

    external_id: str = Field(..., description="Registry identifier (NCT number).")
    title: str = "Untitled Study"
    description: str = "No description available"
    phase: str = "Not specified"
    status: str = Field(
        default="Unknown", description="Upstream overall status enum, e.g. RECRUITING."
    )
    sponsor: str = "Unknown"
    conditions: list[str] = Field(default_factory=list)
    locations: list[str] = Field(
        default_factory=list,
        max_length=MAX_LOCATIONS,
        description="Up to five 'city, state, country' strings.",
    )
    enrollment: int | None = None
    start_date: str = "Not specified"
    completion_date: str = "Not specified"
    eligibility: str = Field(
        default="Not specified",
        max_length=ELIGIBILITY_MAX_CHARS + 3,
        description="Eligibility criteria, truncated to 500 characters plus '...'.",
    )
    min_age: str = "Not specified"
    max_age: str = "Not specified"
    sex: str = "All"
    recruiting: bool = False
    url: str

    @computed_field
    @property
    def conditions_display(self) -> str:
        return ", ".join(self.conditions)
