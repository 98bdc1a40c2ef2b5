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
"""Error taxonomy for upstream and lookup failures.

Every error carries a generic, caller-safe message. The underlying cause
(transport error, raw body) is chained with ``raise ... from`` and logged
where it happens, but never embedded in the message itself.
"""


class CuralinkError(Exception):
    """Service-level error raised to callers of the normalization layer."""

    status_code = 500
    default_message = "The request could not be completed."

    def __init__(self, source: str, message: str | None = None) -> None:
        self.source = source
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class UpstreamTimeout(CuralinkError):
    status_code = 504
    default_message = "The upstream service timed out. Please try again."


class UpstreamUnavailable(CuralinkError):
    status_code = 502
    default_message = "The upstream service is unavailable. Please try again later."


class MalformedUpstreamPayload(CuralinkError):
    status_code = 502
    default_message = "The upstream service returned an unreadable response."


class NotFound(CuralinkError):
    status_code = 404
    default_message = "The requested record was not found."


class InvalidIdentifierShape(CuralinkError):
    """Raised before any network call when an identifier fails its shape check."""

    status_code = 400
    default_message = "The identifier is not valid for this record type."
