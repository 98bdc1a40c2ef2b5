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
"""Builds scored trial, publication and expert recommendations for a patient.

Real matches come from a :class:`CandidateSource` and are scored by
position. When a kind has no real match but the patient has a condition,
two synthetic records stand in for it.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from py_curalink.extractor.publications import PublicationEngine
from py_curalink.extractor.trials import TrialNormalizer
from py_curalink.favorites import decode_json_list
from py_curalink.models.recommendation import Candidate, PatientAttributes, Recommendations
from py_curalink.store.base import BaseStore, Row

logger = logging.getLogger(__name__)

RATING_RANGE = (4.5, 5.0)
REVIEW_COUNT_RANGE = (50, 250)


def trial_score(index: int) -> int:
    return 85 - 5 * index


def publication_score(index: int) -> int:
    return 90 - 5 * index


def expert_score(index: int) -> int:
    return 92 - 4 * index


class CandidateSource(ABC):
    """Supplies real matches for each recommendation kind."""

    @abstractmethod
    async def find_trials(self, condition: str | None, country: str | None, limit: int) -> list[Row]:
        ...

    @abstractmethod
    async def find_publications(self, condition: str | None, limit: int) -> list[Row]:
        ...

    @abstractmethod
    async def find_experts(self, condition: str | None, limit: int) -> list[Row]:
        ...


class StoreCandidateSource(CandidateSource):
    """Reads candidates from the local store."""

    def __init__(self, store: BaseStore) -> None:
        self.store = store

    async def find_trials(self, condition, country, limit):
        return await asyncio.to_thread(self.store.find_trials, condition, country, limit)

    async def find_publications(self, condition, limit):
        return await asyncio.to_thread(self.store.find_publications, condition, limit)

    async def find_experts(self, condition, limit):
        return await asyncio.to_thread(self.store.find_experts, condition, limit)


def _contains(needle: str, *haystacks: str | None) -> bool:
    needle = needle.lower()
    return any(needle in (text or "").lower() for text in haystacks)


def _in_country(locations: list[str], country: str) -> bool:
    return any(loc.rsplit(", ", 1)[-1] == country for loc in locations)


class UpstreamCandidateSource(CandidateSource):
    """Searches the live registries for trials and publications.

    Live results are filtered client-side with the same rules the store
    applies. Experts only exist locally, so they still come from the store.
    """

    def __init__(
        self,
        trials: TrialNormalizer,
        publications: PublicationEngine,
        store: BaseStore,
    ) -> None:
        self.trials = trials
        self.publications = publications
        self.store = store

    async def find_trials(self, condition, country, limit):
        if not condition:
            return []
        found = await self.trials.search_trials(condition, location=country)
        matches = [
            trial
            for trial in found
            if _contains(condition, trial.title, trial.description, trial.conditions_display)
            and (not country or _in_country(trial.locations, country))
        ]
        return [
            {
                "id": trial.external_id,
                "title": trial.title,
                "description": trial.description,
                "status": trial.status,
                "location": trial.locations[0] if trial.locations else None,
                "url": trial.url,
            }
            for trial in matches[:limit]
        ]

    async def find_publications(self, condition, limit):
        if not condition:
            return []
        found = await self.publications.search_publications(condition, max_results=limit)
        return [
            {
                "id": pub.id,
                "title": pub.title,
                "authors": pub.authors,
                "journal": pub.journal,
                "publication_date": pub.publication_date,
                "url": pub.url,
            }
            for pub in found
            if _contains(condition, pub.title, pub.abstract)
        ][:limit]

    async def find_experts(self, condition, limit):
        return await asyncio.to_thread(self.store.find_experts, condition, limit)


def synthetic_trials(patient: PatientAttributes) -> list[Candidate]:
    condition = patient.condition
    location = patient.location or patient.country or "Multiple Locations"
    return [
        Candidate(
            id="sample-1",
            title=f"Phase III Clinical Trial for {condition}",
            score=88,
            synthetic=True,
            attributes={
                "description": (
                    "A randomized, double-blind study evaluating new treatment "
                    f"approaches for {condition}"
                ),
                "status": "Recruiting",
                "location": location,
            },
        ),
        Candidate(
            id="sample-2",
            title=f"Novel Therapeutic Approach for {condition} Treatment",
            score=82,
            synthetic=True,
            attributes={
                "description": "Testing innovative treatment methods with promising early results",
                "status": "Active, not recruiting",
                "location": location,
            },
        ),
    ]


def synthetic_publications(patient: PatientAttributes, today: date) -> list[Candidate]:
    condition = patient.condition
    return [
        Candidate(
            id="pub-sample-1",
            title=f"Recent Advances in {condition} Treatment: A Comprehensive Review",
            score=92,
            synthetic=True,
            attributes={
                "authors": "Smith J, Johnson A, Williams B",
                "journal": "Journal of Medical Research",
                "year": today.year,
            },
        ),
        Candidate(
            id="pub-sample-2",
            title=f"Novel Biomarkers for {condition} Diagnosis and Prognosis",
            score=87,
            synthetic=True,
            attributes={
                "authors": "Chen L, Martinez R, Anderson K",
                "journal": "Clinical Medicine Today",
                "year": today.year - 1,
            },
        ),
    ]


def synthetic_experts(patient: PatientAttributes) -> list[Candidate]:
    return [
        Candidate(
            id="expert-sample-1",
            title="Dr. Sarah Johnson",
            score=94,
            synthetic=True,
            attributes={
                "specialty": f"{patient.condition} Specialist",
                "institution": "Medical Research Institute",
                "rating": "4.9",
                "review_count": 127,
            },
        ),
        Candidate(
            id="expert-sample-2",
            title="Dr. Michael Chen",
            score=89,
            synthetic=True,
            attributes={
                "specialty": "Clinical Oncology",
                "institution": "Advanced Care Hospital",
                "rating": "4.8",
                "review_count": 98,
            },
        ),
    ]


def _attributes(row: Row, *exclude: str) -> dict[str, Any]:
    return {key: value for key, value in row.items() if key not in exclude}


class RecommendationSynthesizer:
    """Builds the three recommendation lists for one patient request."""

    def __init__(
        self,
        source: CandidateSource,
        limit: int = 5,
        rng: random.Random | None = None,
        today: date | None = None,
    ) -> None:
        self.source = source
        self.limit = limit
        self.rng = rng or random.Random()
        self.today = today

    def _score_trials(self, rows: list[Row], patient: PatientAttributes) -> list[Candidate]:
        return [
            Candidate(
                id=str(row.get("id")),
                title=row.get("title") or "Untitled Study",
                score=trial_score(index),
                attributes={
                    **_attributes(row, "id", "title"),
                    "status": row.get("status") or "Recruiting",
                    "location": row.get("location") or patient.location or "Location TBD",
                },
            )
            for index, row in enumerate(rows)
        ]

    def _score_publications(self, rows: list[Row], today: date) -> list[Candidate]:
        return [
            Candidate(
                id=str(row.get("id")),
                title=row.get("title") or "Untitled",
                score=publication_score(index),
                attributes={
                    **_attributes(row, "id", "title"),
                    "journal": row.get("journal") or "Medical Journal",
                    "year": row.get("year") or today.year,
                },
            )
            for index, row in enumerate(rows)
        ]

    def _score_experts(self, rows: list[Row]) -> list[Candidate]:
        candidates = []
        for index, row in enumerate(rows):
            specialties = row.get("specialties")
            if isinstance(specialties, str):
                specialties = decode_json_list(specialties, "specialties") or [specialties]
            elif not isinstance(specialties, list):
                specialties = []
            specialty = specialties[0] if specialties else "Specialist"
            # Rating and review count are display filler.
            rating = self.rng.uniform(*RATING_RANGE)
            candidates.append(
                Candidate(
                    id=str(row.get("id")),
                    title=row.get("name") or "Unknown",
                    score=expert_score(index),
                    attributes={
                        **_attributes(row, "id", "name", "specialties"),
                        "specialties": specialties,
                        "specialty": specialty,
                        "rating": f"{rating:.1f}",
                        "review_count": self.rng.randint(*REVIEW_COUNT_RANGE),
                    },
                )
            )
        return candidates

    async def synthesize_recommendations(self, patient: PatientAttributes) -> Recommendations:
        """Return scored trials, publications and experts for ``patient``."""
        today = self.today or date.today()
        condition = patient.condition or None

        trial_rows, publication_rows, expert_rows = await asyncio.gather(
            self.source.find_trials(condition, patient.country, self.limit),
            self.source.find_publications(condition, self.limit),
            self.source.find_experts(condition, self.limit),
        )

        trials = self._score_trials(trial_rows[: self.limit], patient)
        publications = self._score_publications(publication_rows[: self.limit], today)
        experts = self._score_experts(expert_rows[: self.limit])

        if condition:
            if not trials:
                trials = synthetic_trials(patient)
            if not publications:
                publications = synthetic_publications(patient, today)
            if not experts:
                experts = synthetic_experts(patient)

        logger.info(
            "Recommendations: %d trials, %d publications, %d experts",
            len(trials),
            len(publications),
            len(experts),
        )
        return Recommendations(trials=trials, publications=publications, experts=experts)
