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
"""Shared HTTP plumbing for the three upstream registries."""

import logging
from typing import Any

import httpx

from py_curalink.config import Settings
from py_curalink.errors import (
    MalformedUpstreamPayload,
    NotFound,
    UpstreamTimeout,
    UpstreamUnavailable,
)

logger = logging.getLogger(__name__)


class BaseExtractor:
    """Base class for upstream extractors.

    Every request goes through :meth:`_get`, which applies the configured
    timeout and maps transport failures onto the error taxonomy. No request
    is retried.
    """

    source = "upstream"

    def __init__(
        self, settings: Settings, client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the extractor with settings and an optional HTTP client."""
        self.settings = settings
        # An injected client belongs to the caller and may be shared.
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
            timeout=settings.http_timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this extractor created it."""
        if self._owns_client:
            await self.client.aclose()

    async def _get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Issue one GET request, raising a service-level error on failure."""
        try:
            response = await self.client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.settings.http_timeout,
            )
            response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            logger.error("%s request to %s timed out: %s", self.source, url, e)
            raise UpstreamTimeout(self.source) from e
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info("%s returned 404 for %s", self.source, url)
                raise NotFound(self.source) from e
            logger.error(
                "%s request to %s failed with status %s: %s",
                self.source,
                url,
                e.response.status_code,
                e.response.text[:500],
            )
            raise UpstreamUnavailable(self.source) from e
        except httpx.RequestError as e:
            logger.error("%s request to %s failed: %s", self.source, url, e)
            raise UpstreamUnavailable(self.source) from e

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Issue one GET request and decode its JSON body."""
        response = await self._get(url, params=params, headers=headers)
        try:
            return response.json()
        except ValueError as e:
            logger.error("%s returned a non-JSON body for %s", self.source, url)
            raise MalformedUpstreamPayload(self.source) from e
