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
"""Provides a class to search and fetch studies from ClinicalTrials.gov."""

import logging

from py_curalink.concurrency import map_settled
from py_curalink.errors import InvalidIdentifierShape, MalformedUpstreamPayload
from py_curalink.extractor.base import BaseExtractor
from py_curalink.models.trial import CanonicalTrial
from py_curalink.transformers.trials import (
    TRIAL_URL_TEMPLATE,
    is_trial_external_id,
    normalize_trial,
)

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Accept": "application/json"}


class TrialNormalizer(BaseExtractor):
    """Searches the ClinicalTrials.gov v2 API and normalizes its studies."""

    source = "clinicaltrials.gov"

    @property
    def studies_url(self) -> str:
        return f"{self.settings.clinicaltrials_base_url}/studies"

    async def search_trials(
        self,
        condition: str,
        location: str | None = None,
        max_results: int | None = None,
    ) -> list[CanonicalTrial]:
        """Search studies by condition and, optionally, location.

        A study that fails to normalize is logged and skipped; the rest of
        the page is still returned.
        """
        params = {
            "query.cond": condition,
            "pageSize": max_results or self.settings.trial_page_size,
            "format": "json",
        }
        if location:
            params["query.locn"] = location

        logger.info("Searching ClinicalTrials.gov for: %s", condition)
        payload = await self._get_json(self.studies_url, params=params, headers=JSON_HEADERS)
        if not isinstance(payload, dict):
            raise MalformedUpstreamPayload(self.source)

        studies = payload.get("studies") or []
        trials = []
        for outcome in map_settled(
            lambda study: normalize_trial(study, default_condition=condition), studies,
        ):
            if outcome.ok:
                trials.append(outcome.value)
            else:
                logger.warning("Skipping study that failed to normalize: %s", outcome.error)

        logger.info("Parsed %d of %d trials", len(trials), len(studies))
        return trials

    async def fetch_trial_by_id(self, external_id: str) -> CanonicalTrial:
        """Fetch and normalize a single study by NCT number.

        Raises:
            InvalidIdentifierShape: If ``external_id`` is not an NCT number.
            NotFound: If the registry has no such study.
            MalformedUpstreamPayload: If the study cannot be read.
            UpstreamUnavailable: On any other transport or HTTP failure.
            UpstreamTimeout: If the request timed out.
        """
        if not is_trial_external_id(external_id):
            raise InvalidIdentifierShape(self.source)

        logger.info("Fetching details for trial: %s", external_id)
        payload = await self._get_json(
            f"{self.studies_url}/{external_id}",
            params={"format": "json"},
            headers=JSON_HEADERS,
        )
        if not isinstance(payload, dict):
            raise MalformedUpstreamPayload(self.source)

        try:
            trial = normalize_trial(payload)
        except (TypeError, ValueError, AttributeError) as e:
            logger.error("Failed to normalize trial %s: %s", external_id, e)
            raise MalformedUpstreamPayload(self.source) from e

        if trial.external_id == "N/A":
            trial = trial.model_copy(
                update={
                    "external_id": external_id,
                    "url": TRIAL_URL_TEMPLATE.format(nct_id=external_id),
                }
            )
        return trial
