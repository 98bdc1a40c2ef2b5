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
"""Provides a class to search PubMed through the NCBI E-utilities."""

import asyncio
import logging
from typing import Any

from py_curalink.errors import (
    InvalidIdentifierShape,
    MalformedUpstreamPayload,
    NotFound,
)
from py_curalink.extractor.base import BaseExtractor
from py_curalink.models.publication import CanonicalPublication
from py_curalink.transformers.publications import (
    is_publication_external_id,
    merge_publications,
    parse_abstracts,
    parse_id_list,
    parse_summaries,
)

logger = logging.getLogger(__name__)


class PublicationEngine(BaseExtractor):
    """Runs the esearch -> (esummary || efetch) pipeline against PubMed."""

    source = "pubmed"

    def _url(self, endpoint: str) -> str:
        return f"{self.settings.pubmed_base_url}/{endpoint}"

    async def _search_ids(self, query: str, max_results: int) -> list[str]:
        payload = await self._get_json(
            self._url("esearch.fcgi"),
            params={
                "db": "pubmed",
                "term": query,
                "retmax": max_results,
                "retmode": "json",
                "sort": "relevance",
            },
        )
        ids = parse_id_list(payload)
        if ids is None:
            raise MalformedUpstreamPayload(self.source)
        return ids

    async def _fetch_summaries(self, ids: list[str]) -> dict[str, dict[str, Any]]:
        payload = await self._get_json(
            self._url("esummary.fcgi"),
            params={"db": "pubmed", "id": ",".join(ids), "retmode": "json"},
        )
        summaries = parse_summaries(payload)
        if summaries is None:
            raise MalformedUpstreamPayload(self.source)
        return summaries

    async def _fetch_abstracts(self, ids: list[str]) -> dict[str, str]:
        response = await self._get(
            self._url("efetch.fcgi"),
            params={"db": "pubmed", "id": ",".join(ids), "retmode": "xml"},
        )
        return parse_abstracts(response.content)

    async def search_publications(
        self, query: str, max_results: int | None = None,
    ) -> list[CanonicalPublication]:
        """Search PubMed and return ranked publications with abstracts.

        The summary and abstract calls only start once the id search has
        returned, and run concurrently with each other. An empty id list
        returns immediately.
        """
        logger.info("Searching PubMed for: %s", query)
        ids = await self._search_ids(
            query, max_results or self.settings.publication_max_results,
        )
        if not ids:
            logger.info("No PubMed results found")
            return []

        logger.info("Found %d PubMed articles", len(ids))
        summaries, abstracts = await asyncio.gather(
            self._fetch_summaries(ids), self._fetch_abstracts(ids),
        )
        publications = merge_publications(ids, summaries, abstracts)
        logger.info("Parsed %d articles successfully", len(publications))
        return publications

    async def fetch_publication_by_id(self, pmid: str) -> CanonicalPublication:
        """Look up a single article by PMID through a uid-scoped search.

        Raises:
            InvalidIdentifierShape: If ``pmid`` does not look like a PMID.
            NotFound: If the search yields no usable record.
        """
        if not is_publication_external_id(pmid):
            raise InvalidIdentifierShape(self.source)

        publications = await self.search_publications(f"{pmid}[uid]", max_results=1)
        if not publications:
            raise NotFound(self.source)
        return publications[0]
