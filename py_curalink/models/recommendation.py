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


class PatientAttributes(BaseModel):
    condition: str | None = None
    country: str | None = None
    location: str | None = None


class Candidate(BaseModel):
    """One scored recommendation.

    ``score`` is a match score for trials and experts and a relevance score
    for publications; ``attributes`` holds the kind-specific display fields.
    """

    id: str
    title: str
    score: int
    synthetic: bool = False
    attributes: dict[str, Any] = Field(default_factory=dict)


class Recommendations(BaseModel):
    trials: list[Candidate] = Field(default_factory=list)
    publications: list[Candidate] = Field(default_factory=list)
    experts: list[Candidate] = Field(default_factory=list)
