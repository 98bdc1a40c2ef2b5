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
"""Tests for recommendation scoring and synthetic fallbacks."""

import random
from datetime import date

import pytest

from py_curalink.models.publication import CanonicalPublication
from py_curalink.models.recommendation import PatientAttributes
from py_curalink.models.trial import CanonicalTrial
from py_curalink.recommendations import (
    CandidateSource,
    RecommendationSynthesizer,
    StoreCandidateSource,
    UpstreamCandidateSource,
)

TODAY = date(2025, 6, 1)


class FakeSource(CandidateSource):
    def __init__(self, trials=None, publications=None, experts=None):
        self.trials = trials or []
        self.publications = publications or []
        self.experts = experts or []
        self.calls = []

    async def find_trials(self, condition, country, limit):
        self.calls.append(("trials", condition, country, limit))
        return self.trials

    async def find_publications(self, condition, limit):
        self.calls.append(("publications", condition, limit))
        return self.publications

    async def find_experts(self, condition, limit):
        self.calls.append(("experts", condition, limit))
        return self.experts


def synthesizer(source, limit=5):
    return RecommendationSynthesizer(source, limit=limit, rng=random.Random(7), today=TODAY)


@pytest.mark.asyncio
async def test_empty_kinds_get_two_synthetic_records():
    patient = PatientAttributes(condition="Glioma", location="Boston, MA")

    result = await synthesizer(FakeSource()).synthesize_recommendations(patient)

    assert [c.score for c in result.trials] == [88, 82]
    assert [c.score for c in result.publications] == [92, 87]
    assert [c.score for c in result.experts] == [94, 89]
    assert all(c.synthetic for c in result.trials + result.publications + result.experts)
    assert result.trials[0].title == "Phase III Clinical Trial for Glioma"
    assert result.trials[0].attributes["location"] == "Boston, MA"
    assert [c.attributes["year"] for c in result.publications] == [2025, 2024]
    assert result.experts[0].attributes["specialty"] == "Glioma Specialist"


@pytest.mark.asyncio
async def test_no_condition_yields_empty_lists():
    result = await synthesizer(FakeSource()).synthesize_recommendations(PatientAttributes())

    assert result.trials == []
    assert result.publications == []
    assert result.experts == []


@pytest.mark.asyncio
async def test_real_matches_are_scored_by_position():
    source = FakeSource(
        trials=[{"id": i, "title": f"Trial {i}"} for i in range(7)],
        publications=[{"id": "p1", "title": "Pub", "year": 2020}, {"id": "p2", "title": "Pub 2"}],
        experts=[
            {"id": 1, "name": "Dr. Lee", "specialties": '["Neuro-oncology", "Neurology"]'},
            {"id": 2, "name": "Dr. Kim", "specialties": None},
            {"id": 3, "name": "Dr. Roe", "specialties": ["Oncology"]},
        ],
    )
    patient = PatientAttributes(condition="Glioma", country="United States")

    result = await synthesizer(source).synthesize_recommendations(patient)

    assert [c.score for c in result.trials] == [85, 80, 75, 70, 65]
    assert result.trials[0].attributes["status"] == "Recruiting"
    assert result.trials[0].attributes["location"] == "Location TBD"
    assert [c.score for c in result.publications] == [90, 85]
    assert [c.attributes["year"] for c in result.publications] == [2020, 2025]
    assert result.publications[0].attributes["journal"] == "Medical Journal"
    assert [c.score for c in result.experts] == [92, 88, 84]
    assert [c.attributes["specialty"] for c in result.experts] == [
        "Neuro-oncology",
        "Specialist",
        "Oncology",
    ]
    assert not any(c.synthetic for c in result.trials + result.publications + result.experts)
    assert ("trials", "Glioma", "United States", 5) in source.calls


@pytest.mark.asyncio
async def test_expert_display_filler_is_in_range():
    source = FakeSource(experts=[{"id": i, "name": f"Dr. {i}"} for i in range(5)])

    result = await synthesizer(source).synthesize_recommendations(
        PatientAttributes(condition="Asthma")
    )

    for expert in result.experts:
        assert 4.5 <= float(expert.attributes["rating"]) <= 5.0
        assert 50 <= expert.attributes["review_count"] <= 250


@pytest.mark.asyncio
async def test_only_empty_kind_is_substituted():
    source = FakeSource(trials=[{"id": "t1", "title": "Real trial", "status": "RECRUITING"}])

    result = await synthesizer(source).synthesize_recommendations(
        PatientAttributes(condition="Asthma")
    )

    assert len(result.trials) == 1
    assert not result.trials[0].synthetic
    assert result.trials[0].attributes["status"] == "RECRUITING"
    assert all(c.synthetic for c in result.publications)


@pytest.mark.asyncio
async def test_store_candidate_source_delegates(mocker):
    store = mocker.Mock()
    store.find_trials.return_value = [{"id": 1}]
    store.find_publications.return_value = []
    store.find_experts.return_value = [{"id": 2}]
    source = StoreCandidateSource(store)

    assert await source.find_trials("Asthma", "Canada", 5) == [{"id": 1}]
    assert await source.find_publications("Asthma", 5) == []
    assert await source.find_experts("Asthma", 5) == [{"id": 2}]
    store.find_trials.assert_called_once_with("Asthma", "Canada", 5)


@pytest.mark.asyncio
async def test_upstream_candidate_source_filters_live_results(mocker):
    trials = mocker.Mock()
    trials.search_trials = mocker.AsyncMock(
        return_value=[
            CanonicalTrial(
                external_id="NCT00000001",
                title="Asthma control study",
                locations=["Toronto, Ontario, Canada"],
                url="https://clinicaltrials.gov/study/NCT00000001",
            ),
            CanonicalTrial(
                external_id="NCT00000002",
                title="Asthma in adults",
                locations=["Boston, Massachusetts, United States"],
                url="https://clinicaltrials.gov/study/NCT00000002",
            ),
            CanonicalTrial(
                external_id="NCT00000003",
                title="Unrelated",
                locations=["Ottawa, Ontario, Canada"],
                url="https://clinicaltrials.gov/study/NCT00000003",
            ),
        ]
    )
    publications = mocker.Mock()
    publications.search_publications = mocker.AsyncMock(
        return_value=[
            CanonicalPublication(
                id="38000001",
                title="Severe asthma biologics",
                url="https://pubmed.ncbi.nlm.nih.gov/38000001/",
                relevance_score=1.0,
            ),
            CanonicalPublication(
                id="38000002",
                title="Something else",
                url="https://pubmed.ncbi.nlm.nih.gov/38000002/",
                relevance_score=0.5,
            ),
        ]
    )
    store = mocker.Mock()
    store.find_experts.return_value = []
    source = UpstreamCandidateSource(trials, publications, store)

    found_trials = await source.find_trials("asthma", "Canada", 5)
    found_publications = await source.find_publications("asthma", 5)

    assert [t["id"] for t in found_trials] == ["NCT00000001"]
    assert found_trials[0]["location"] == "Toronto, Ontario, Canada"
    assert [p["id"] for p in found_publications] == ["38000001"]
    assert await source.find_experts("asthma", 5) == []
    trials.search_trials.assert_awaited_once_with("asthma", location="Canada")


@pytest.mark.asyncio
async def test_upstream_candidate_source_without_condition(mocker):
    trials = mocker.Mock()
    trials.search_trials = mocker.AsyncMock()
    source = UpstreamCandidateSource(trials, mocker.Mock(), mocker.Mock())

    assert await source.find_trials(None, None, 5) == []
    trials.search_trials.assert_not_called()


@pytest.mark.asyncio
async def test_expert_specialties_object_falls_back():
    source = FakeSource(
        experts=[
            {"id": 1, "name": "Dr. Lee", "specialties": {"primary": "Oncology"}},
            {"id": 2, "name": "Dr. Kim", "specialties": []},
        ]
    )

    result = await synthesizer(source).synthesize_recommendations(
        PatientAttributes(condition="Asthma")
    )

    assert [c.attributes["specialty"] for c in result.experts] == ["Specialist", "Specialist"]
    assert result.experts[0].attributes["specialties"] == []
