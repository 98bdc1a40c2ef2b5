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
from pydantic import BaseModel, Field

NO_ABSTRACT = "No abstract available"


class CanonicalPublication(BaseModel):
    """Pydantic model for a normalized PubMed article."""

    id: str = Field(..., description="PubMed identifier (PMID).")
    title: str
    authors: str = Field(
        default="Unknown", description="Up to three names, then ' et al.'."
    )
    author_names: list[str] = Field(default_factory=list)
    journal: str = "Unknown"
    publication_date: str = "Unknown"
    abstract: str = NO_ABSTRACT
    doi: str | None = None
    url: str
    relevance_score: float = Field(
        ...,
        gt=0.0,
        le=1.0,
        description="Rank-derived score; 1.0 for the first search hit.",
    )
