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
"""Maps raw ClinicalTrials.gov v2 studies onto :class:`CanonicalTrial`.

Each module of the study's ``protocolSection`` has its own extraction
function returning only the fields it owns, already defaulted; the
functions are composed by :func:`normalize_trial`.
"""

import re
from typing import Any

from py_curalink.models.trial import (
    ELIGIBILITY_MAX_CHARS,
    MAX_LOCATIONS,
    CanonicalTrial,
)

NCT_ID_PATTERN = re.compile(r"^NCT\d+$", re.IGNORECASE)
RECRUITING_STATUSES = frozenset({"RECRUITING", "NOT_YET_RECRUITING"})
TRIAL_URL_TEMPLATE = "https://clinicaltrials.gov/study/{nct_id}"

NOT_SPECIFIED = "Not specified"


def is_trial_external_id(value: Any) -> bool:
    """Return True if ``value`` looks like an NCT number (case-insensitive)."""
    return isinstance(value, str) and NCT_ID_PATTERN.match(value) is not None


def _module(protocol: dict[str, Any], name: str) -> dict[str, Any]:
    module = protocol.get(name)
    return module if isinstance(module, dict) else {}


def _nested(module: dict[str, Any], *keys: str) -> Any:
    value: Any = module
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def extract_identification(module: dict[str, Any]) -> dict[str, Any]:
    return {
        "external_id": module.get("nctId") or "N/A",
        "title": module.get("briefTitle") or "Untitled Study",
    }


def extract_status(module: dict[str, Any]) -> dict[str, Any]:
    status = module.get("overallStatus") or "Unknown"
    enrollment = _nested(module, "enrollmentInfo", "count")
    return {
        "status": status,
        "recruiting": status in RECRUITING_STATUSES,
        "enrollment": enrollment if isinstance(enrollment, int) else None,
        "start_date": _nested(module, "startDateStruct", "date") or NOT_SPECIFIED,
        "completion_date": _nested(module, "completionDateStruct", "date")
        or NOT_SPECIFIED,
    }


def extract_description(module: dict[str, Any]) -> dict[str, Any]:
    return {"description": module.get("briefSummary") or "No description available"}


def extract_conditions(
    module: dict[str, Any], default_condition: str | None = None,
) -> dict[str, Any]:
    conditions = [c for c in module.get("conditions") or [] if c]
    if not conditions and default_condition:
        conditions = [default_condition]
    return {"conditions": conditions}


def extract_design(module: dict[str, Any]) -> dict[str, Any]:
    phases = [p for p in module.get("phases") or [] if p]
    return {"phase": ", ".join(phases) if phases else NOT_SPECIFIED}


def truncate_eligibility(text: str) -> str:
    """Cut eligibility text to 500 characters, marking the cut with '...'."""
    if len(text) > ELIGIBILITY_MAX_CHARS:
        return text[:ELIGIBILITY_MAX_CHARS] + "..."
    return text


def extract_eligibility(module: dict[str, Any]) -> dict[str, Any]:
    criteria = module.get("eligibilityCriteria")
    return {
        "eligibility": truncate_eligibility(criteria) if criteria else NOT_SPECIFIED,
        "min_age": module.get("minimumAge") or NOT_SPECIFIED,
        "max_age": module.get("maximumAge") or NOT_SPECIFIED,
        "sex": module.get("sex") or "All",
    }


def format_location(location: dict[str, Any]) -> str:
    parts = (location.get("city"), location.get("state"), location.get("country"))
    return ", ".join(part for part in parts if part)


def extract_locations(module: dict[str, Any]) -> dict[str, Any]:
    locations = [
        formatted
        for formatted in (
            format_location(loc)
            for loc in module.get("locations") or []
            if isinstance(loc, dict)
        )
        if formatted
    ]
    return {"locations": locations[:MAX_LOCATIONS]}


def extract_sponsor(module: dict[str, Any]) -> dict[str, Any]:
    return {"sponsor": _nested(module, "leadSponsor", "name") or "Unknown"}


def normalize_trial(
    raw_study: dict[str, Any], default_condition: str | None = None,
) -> CanonicalTrial:
    """Normalize one study into a :class:`CanonicalTrial`.

    Args:
        raw_study: A study as returned by ``/studies`` or ``/studies/{id}``.
            A bare ``protocolSection`` dictionary is accepted as well.
        default_condition: Used as the only condition when the study lists
            none (the search term, in search context).

    Raises:
        TypeError: If ``raw_study`` is not a dictionary.
    """
    if not isinstance(raw_study, dict):
        raise TypeError(f"Expected a study object, got {type(raw_study).__name__}")

    protocol = raw_study.get("protocolSection", raw_study)
    if not isinstance(protocol, dict):
        protocol = {}

    fields: dict[str, Any] = {}
    fields.update(extract_identification(_module(protocol, "identificationModule")))
    fields.update(extract_status(_module(protocol, "statusModule")))
    fields.update(extract_description(_module(protocol, "descriptionModule")))
    fields.update(
        extract_conditions(_module(protocol, "conditionsModule"), default_condition)
    )
    fields.update(extract_design(_module(protocol, "designModule")))
    fields.update(extract_eligibility(_module(protocol, "eligibilityModule")))
    fields.update(extract_locations(_module(protocol, "contactsLocationsModule")))
    fields.update(extract_sponsor(_module(protocol, "sponsorCollaboratorsModule")))
    fields["url"] = TRIAL_URL_TEMPLATE.format(nct_id=fields["external_id"])

    return CanonicalTrial(**fields)


def filter_trials(
    trials: list[CanonicalTrial], phase: str | None = None, status: str | None = None,
) -> list[CanonicalTrial]:
    """Keep trials whose phase contains ``phase`` and whose status equals ``status``.

    Both comparisons ignore case.
    """
    filtered = trials
    if phase:
        filtered = [t for t in filtered if phase.lower() in t.phase.lower()]
    if status:
        filtered = [t for t in filtered if t.status.lower() == status.lower()]
    return filtered
