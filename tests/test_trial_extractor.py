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
"""Tests for the ClinicalTrials.gov extractor."""

import re

import httpx
import pytest
from pytest_httpx import HTTPXMock

from py_curalink.config import Settings
from py_curalink.errors import (
    InvalidIdentifierShape,
    MalformedUpstreamPayload,
    NotFound,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from py_curalink.extractor.publications import PublicationEngine
from py_curalink.extractor.trials import TrialNormalizer

SEARCH_URL = re.compile(r"https://clinicaltrials\.gov/api/v2/studies\?.*")
DETAIL_URL = re.compile(r"https://clinicaltrials\.gov/api/v2/studies/NCT01234567.*")

MOCK_SEARCH_RESPONSE = {
    "studies": [
        {
            "protocolSection": {
                "identificationModule": {"nctId": "NCT01234567", "briefTitle": "Trial 1"},
                "statusModule": {"overallStatus": "RECRUITING"},
            }
        },
        "not a study",
        {
            "protocolSection": {
                "identificationModule": {"nctId": "NCT07654321", "briefTitle": "Trial 2"},
            }
        },
    ]
}


@pytest.fixture
def mock_settings() -> Settings:
    """Fixture for mock settings."""
    return Settings()


@pytest.mark.asyncio
async def test_search_trials_skips_bad_records(mock_settings: Settings, httpx_mock: HTTPXMock):
    """
    Tests that one study failing to normalize does not abort the page.
    """
    httpx_mock.add_response(method="GET", url=SEARCH_URL, json=MOCK_SEARCH_RESPONSE)

    async with TrialNormalizer(settings=mock_settings) as extractor:
        trials = await extractor.search_trials("glioma", location="Boston", max_results=3)

    assert [t.external_id for t in trials] == ["NCT01234567", "NCT07654321"]
    assert trials[0].recruiting is True
    assert trials[1].conditions == ["glioma"]

    request = httpx_mock.get_requests()[0]
    assert request.url.params["query.cond"] == "glioma"
    assert request.url.params["query.locn"] == "Boston"
    assert request.url.params["pageSize"] == "3"
    assert request.url.params["format"] == "json"


@pytest.mark.asyncio
async def test_search_trials_without_location(mock_settings: Settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(method="GET", url=SEARCH_URL, json={"studies": []})

    async with TrialNormalizer(settings=mock_settings) as extractor:
        trials = await extractor.search_trials("asthma")

    assert trials == []
    request = httpx_mock.get_requests()[0]
    assert "query.locn" not in request.url.params
    assert request.url.params["pageSize"] == "20"


@pytest.mark.asyncio
async def test_search_trials_upstream_error(mock_settings: Settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(method="GET", url=SEARCH_URL, status_code=500, text="boom")

    async with TrialNormalizer(settings=mock_settings) as extractor:
        with pytest.raises(UpstreamUnavailable) as exc_info:
            await extractor.search_trials("asthma")

    assert "boom" not in str(exc_info.value)
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_search_trials_non_json(mock_settings: Settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(method="GET", url=SEARCH_URL, text="<html>maintenance</html>")

    async with TrialNormalizer(settings=mock_settings) as extractor:
        with pytest.raises(MalformedUpstreamPayload):
            await extractor.search_trials("asthma")


@pytest.mark.asyncio
async def test_fetch_trial_by_id(mock_settings: Settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        method="GET",
        url=DETAIL_URL,
        json={
            "protocolSection": {
                "identificationModule": {"nctId": "NCT01234567", "briefTitle": "Trial 1"},
                "eligibilityModule": {"eligibilityCriteria": "z" * 700},
            }
        },
    )

    async with TrialNormalizer(settings=mock_settings) as extractor:
        trial = await extractor.fetch_trial_by_id("NCT01234567")

    assert trial.title == "Trial 1"
    assert len(trial.eligibility) == 503


@pytest.mark.asyncio
async def test_fetch_trial_by_id_uses_requested_id_when_missing(
    mock_settings: Settings, httpx_mock: HTTPXMock
):
    httpx_mock.add_response(method="GET", url=DETAIL_URL, json={"protocolSection": {}})

    async with TrialNormalizer(settings=mock_settings) as extractor:
        trial = await extractor.fetch_trial_by_id("NCT01234567")

    assert trial.external_id == "NCT01234567"
    assert trial.url == "https://clinicaltrials.gov/study/NCT01234567"


@pytest.mark.asyncio
async def test_fetch_trial_by_id_not_found(mock_settings: Settings, httpx_mock: HTTPXMock):
    httpx_mock.add_response(method="GET", url=DETAIL_URL, status_code=404)

    async with TrialNormalizer(settings=mock_settings) as extractor:
        with pytest.raises(NotFound):
            await extractor.fetch_trial_by_id("NCT01234567")


@pytest.mark.asyncio
async def test_fetch_trial_by_id_timeout(mock_settings: Settings, httpx_mock: HTTPXMock):
    httpx_mock.add_exception(httpx.ReadTimeout("Timeout"), method="GET", url=DETAIL_URL)

    async with TrialNormalizer(settings=mock_settings) as extractor:
        with pytest.raises(UpstreamTimeout):
            await extractor.fetch_trial_by_id("NCT01234567")


@pytest.mark.asyncio
async def test_fetch_trial_by_id_connection_error(mock_settings: Settings, httpx_mock: HTTPXMock):
    httpx_mock.add_exception(httpx.ConnectError("refused"), method="GET", url=DETAIL_URL)

    async with TrialNormalizer(settings=mock_settings) as extractor:
        with pytest.raises(UpstreamUnavailable):
            await extractor.fetch_trial_by_id("NCT01234567")


@pytest.mark.asyncio
async def test_fetch_trial_by_id_rejects_bad_shape(mock_settings: Settings, httpx_mock: HTTPXMock):
    """
    Tests that a malformed id is rejected before any request is made.
    """
    async with TrialNormalizer(settings=mock_settings) as extractor:
        with pytest.raises(InvalidIdentifierShape):
            await extractor.fetch_trial_by_id("12345")

    assert httpx_mock.get_requests() == []


@pytest.mark.asyncio
async def test_fetch_trial_by_id_unreadable_study(mock_settings: Settings, httpx_mock: HTTPXMock):
    """
    Tests that a 2xx study that cannot be normalized is reported as a
    malformed payload without leaking the raw record.
    """
    httpx_mock.add_response(
        method="GET",
        url=DETAIL_URL,
        json={
            "protocolSection": {
                "identificationModule": {
                    "nctId": "NCT01234567",
                    "briefTitle": {"text": "nested title"},
                }
            }
        },
    )

    async with TrialNormalizer(settings=mock_settings) as normalizer:
        with pytest.raises(MalformedUpstreamPayload) as exc_info:
            await normalizer.fetch_trial_by_id("NCT01234567")

    assert "nested title" not in str(exc_info.value)
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_shared_client_survives_extractor_exit(
    mock_settings: Settings, httpx_mock: HTTPXMock
):
    """
    Tests that leaving one extractor's context does not close a client the
    caller shares with another extractor.
    """
    httpx_mock.add_response(
        method="GET",
        url=re.compile(r".*/esearch\.fcgi\?.*"),
        json={"esearchresult": {"idlist": []}},
    )

    async with httpx.AsyncClient() as client:
        async with TrialNormalizer(settings=mock_settings, client=client):
            pass

        assert not client.is_closed
        async with PublicationEngine(settings=mock_settings, client=client) as engine:
            assert await engine.search_publications("asthma") == []

        assert not client.is_closed


@pytest.mark.asyncio
async def test_owned_client_closed_on_exit(mock_settings: Settings):
    async with TrialNormalizer(settings=mock_settings) as normalizer:
        client = normalizer.client
        assert not client.is_closed

    assert client.is_closed
