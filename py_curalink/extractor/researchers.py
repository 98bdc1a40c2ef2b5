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
"""Provides a class to search and read researcher records from ORCID."""

import logging
from typing import Any

from py_curalink.concurrency import gather_settled, map_settled
from py_curalink.errors import InvalidIdentifierShape, MalformedUpstreamPayload
from py_curalink.extractor.base import BaseExtractor
from py_curalink.models.researcher import CanonicalResearcherProfile
from py_curalink.transformers.researchers import (
    is_orcid_id,
    normalize_record,
    normalize_stub,
    orcid_from_stub,
)

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Accept": "application/json"}


class ResearcherIdentityResolver(BaseExtractor):
    """Searches the ORCID public API and normalizes researcher profiles."""

    source = "orcid"

    async def _fetch_record(self, orcid: str) -> dict[str, Any]:
        record = await self._get_json(
            f"{self.settings.orcid_base_url}/{orcid}", headers=JSON_HEADERS,
        )
        if not isinstance(record, dict):
            raise MalformedUpstreamPayload(self.source)
        return record

    async def _detailed_or_stub(self, stub: dict[str, Any]) -> CanonicalResearcherProfile:
        orcid = orcid_from_stub(stub)
        try:
            return normalize_record(orcid, await self._fetch_record(orcid))
        except Exception as e:
            logger.warning(
                "Failed to fetch details for %s, using search data: %s", orcid, e,
            )
            return normalize_stub(stub)

    async def search_researchers(
        self,
        query: str,
        max_results: int | None = None,
        fetch_details: bool = True,
    ) -> list[CanonicalResearcherProfile]:
        """Search ORCID for researchers.

        With ``fetch_details`` every hit's full record is fetched
        concurrently. A hit whose record cannot be fetched falls back to the
        profile built from the search data, so no hit is lost to a detail
        failure. Hits without an ORCID iD are skipped.
        """
        logger.info("Searching ORCID for: %s", query)
        payload = await self._get_json(
            f"{self.settings.orcid_base_url}/search/",
            params={"q": query, "rows": max_results or self.settings.researcher_max_results},
            headers=JSON_HEADERS,
        )
        if not isinstance(payload, dict):
            raise MalformedUpstreamPayload(self.source)

        stubs = [
            stub
            for stub in payload.get("result") or []
            if isinstance(stub, dict) and orcid_from_stub(stub)
        ]
        logger.info("Found %d ORCID profiles", len(stubs))

        if fetch_details:
            outcomes = await gather_settled(self._detailed_or_stub, stubs)
        else:
            outcomes = map_settled(normalize_stub, stubs)

        researchers = []
        for outcome in outcomes:
            if outcome.ok:
                researchers.append(outcome.value)
            else:
                logger.warning("Dropping ORCID hit that could not be normalized: %s", outcome.error)

        logger.info("Successfully processed %d researchers", len(researchers))
        return researchers

    async def get_researcher_profile(self, orcid: str) -> CanonicalResearcherProfile:
        """Fetch the full ORCID record for ``orcid``.

        Raises:
            InvalidIdentifierShape: If ``orcid`` is not an ORCID iD.
            NotFound: If ORCID has no such record.
            MalformedUpstreamPayload: If the record cannot be read.
            UpstreamTimeout: If the request timed out.
            UpstreamUnavailable: On any other transport or HTTP failure.
        """
        if not is_orcid_id(orcid):
            raise InvalidIdentifierShape(self.source)

        logger.info("Fetching ORCID profile: %s", orcid)
        record = await self._fetch_record(orcid)
        try:
            profile = normalize_record(orcid, record)
        except (TypeError, ValueError, AttributeError) as e:
            logger.error("Failed to normalize ORCID record %s: %s", orcid, e)
            raise MalformedUpstreamPayload(self.source) from e
        logger.info("Successfully fetched profile for %s", profile.name)
        return profile
