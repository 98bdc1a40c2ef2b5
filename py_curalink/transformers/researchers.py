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
"""Maps ORCID v3.0 search stubs and full records onto researcher profiles.

Search stubs are sparse and come in two layouts: a flat one (fields at the
root, or under ``orcid-search-result``) and a legacy one nested under
``person-summary``. Full records carry ``person`` and
``activities-summary``.
"""

import re
from typing import Any

from py_curalink.models.researcher import (
    AffiliationEntry,
    CanonicalResearcherProfile,
    PartialDate,
    WorkSummary,
)

ORCID_ID_PATTERN = re.compile(r"^\d{4}-\d{4}-\d{4}-\d{3}[\dX]$")
ORCID_URL_TEMPLATE = "https://orcid.org/{orcid}"
MAX_WORKS = 10

NAME_NOT_PUBLIC = "Name not public"
UNKNOWN_NAME = "Unknown"
NOT_SPECIFIED = "Not specified"


def is_orcid_id(value: Any) -> bool:
    return isinstance(value, str) and ORCID_ID_PATTERN.match(value) is not None


def format_partial_date(raw: dict[str, Any] | None) -> str | None:
    """Format ``{year?, month?, day?}`` as YYYY-MM-DD, YYYY-MM, YYYY or None.

    Parts may be plain values or ORCID's ``{"value": ...}`` wrappers.
    """
    return PartialDate.from_upstream(raw).format()


def _value(node: Any) -> str:
    if isinstance(node, dict):
        node = node.get("value")
    return node.strip() if isinstance(node, str) else ""


def _join_name(given: str, family: str) -> str:
    return f"{given} {family}".strip()


def orcid_from_stub(stub: dict[str, Any]) -> str | None:
    identifier = stub.get("orcid-identifier")
    if isinstance(identifier, dict) and identifier.get("path"):
        return identifier["path"]
    return None


def _search_root(stub: dict[str, Any]) -> dict[str, Any]:
    root = stub.get("orcid-search-result")
    return root if isinstance(root, dict) else stub


def extract_stub_name(stub: dict[str, Any]) -> str:
    root = _search_root(stub)
    full_name = _join_name(_value(root.get("given-names")), _value(root.get("family-name")))
    if full_name:
        return full_name
    credit_name = _value(root.get("credit-name"))
    if credit_name:
        return credit_name

    summary = stub.get("person-summary")
    if isinstance(summary, dict):
        name = summary.get("name")
        if isinstance(name, dict):
            full_name = _join_name(
                _value(name.get("given-names")), _value(name.get("family-name")),
            )
            if full_name:
                return full_name
        credit_name = _value(summary.get("credit-name"))
        if credit_name:
            return credit_name

    return NAME_NOT_PUBLIC


def extract_stub_affiliation(stub: dict[str, Any]) -> str:
    institutions = _search_root(stub).get("institution-name")
    if isinstance(institutions, list) and institutions and institutions[0]:
        return institutions[0]

    summary = stub.get("person-summary")
    if isinstance(summary, dict):
        employments = summary.get("employment-summary")
        if isinstance(employments, list) and employments:
            organization = (employments[0] or {}).get("organization") or {}
            if organization.get("name"):
                return organization["name"]

    return NOT_SPECIFIED


def normalize_stub(stub: dict[str, Any]) -> CanonicalResearcherProfile | None:
    """Build a name-and-affiliation profile from a search hit.

    Returns None for hits without an ORCID iD.
    """
    orcid = orcid_from_stub(stub)
    if orcid is None:
        return None
    return CanonicalResearcherProfile(
        orcid=orcid,
        name=extract_stub_name(stub),
        affiliation=extract_stub_affiliation(stub),
        url=ORCID_URL_TEMPLATE.format(orcid=orcid),
    )


def extract_full_name(person: dict[str, Any]) -> str:
    name = person.get("name")
    if not isinstance(name, dict):
        return UNKNOWN_NAME
    full_name = _join_name(_value(name.get("given-names")), _value(name.get("family-name")))
    return full_name or _value(name.get("credit-name")) or UNKNOWN_NAME


def extract_biography(person: dict[str, Any]) -> str | None:
    biography = person.get("biography")
    if isinstance(biography, dict):
        return biography.get("content") or None
    return None


def extract_keywords(person: dict[str, Any]) -> list[str]:
    keywords: list[str] = []
    for keyword in (person.get("keywords") or {}).get("keyword") or []:
        content = keyword.get("content") if isinstance(keyword, dict) else None
        if content and content not in keywords:
            keywords.append(content)
    return keywords


def _first_summaries(section: Any, summary_key: str) -> list[dict[str, Any]]:
    """Return the first ``summary_key`` entry of every affiliation group."""
    if not isinstance(section, dict):
        return []
    entries = []
    for group in section.get("affiliation-group") or []:
        summaries = group.get("summaries") if isinstance(group, dict) else None
        if not summaries:
            continue
        entry = summaries[0].get(summary_key) if isinstance(summaries[0], dict) else None
        if isinstance(entry, dict):
            entries.append(entry)
    return entries


def _affiliation_entry(summary: dict[str, Any], default_role: str) -> AffiliationEntry:
    return AffiliationEntry(
        organization=(summary.get("organization") or {}).get("name") or "Unknown",
        role=summary.get("role-title") or default_role,
        department=summary.get("department") or None,
        start_date=format_partial_date(summary.get("start-date")),
        end_date=format_partial_date(summary.get("end-date")),
    )


def extract_employment(activities: dict[str, Any]) -> list[AffiliationEntry]:
    return [
        _affiliation_entry(summary, NOT_SPECIFIED)
        for summary in _first_summaries(activities.get("employments"), "employment-summary")
    ]


def extract_education(activities: dict[str, Any]) -> list[AffiliationEntry]:
    return [
        _affiliation_entry(summary, "Degree")
        for summary in _first_summaries(activities.get("educations"), "education-summary")
    ]


def extract_primary_affiliation(activities: dict[str, Any]) -> str:
    """Employment organization first, then education, else 'Not specified'."""
    for section, key in (
        ("employments", "employment-summary"),
        ("educations", "education-summary"),
    ):
        summaries = _first_summaries(activities.get(section), key)
        if summaries:
            name = (summaries[0].get("organization") or {}).get("name")
            if name:
                return name
    return NOT_SPECIFIED


def _work_url(work: dict[str, Any]) -> str | None:
    external_ids = (work.get("external-ids") or {}).get("external-id") or []
    if external_ids and isinstance(external_ids[0], dict):
        return _value(external_ids[0].get("external-id-url")) or None
    return None


def extract_works(works: dict[str, Any]) -> list[WorkSummary]:
    """First work summary of each of the first ten groups, in upstream order."""
    publications = []
    for group in (works.get("group") or [])[:MAX_WORKS]:
        summaries = group.get("work-summary") if isinstance(group, dict) else None
        if not summaries or not isinstance(summaries[0], dict):
            continue
        work = summaries[0]
        publications.append(
            WorkSummary(
                title=_value((work.get("title") or {}).get("title")) or "Untitled",
                type=work.get("type") or "Publication",
                publication_date=format_partial_date(work.get("publication-date")),
                journal=_value(work.get("journal-title")) or None,
                url=_work_url(work),
            )
        )
    return publications


def normalize_record(orcid: str, record: dict[str, Any]) -> CanonicalResearcherProfile:
    """Build a full profile from an ORCID ``/{orcid}`` record."""
    person = record.get("person") or {}
    activities = record.get("activities-summary") or {}
    works = activities.get("works") or {}
    return CanonicalResearcherProfile(
        orcid=orcid,
        name=extract_full_name(person),
        biography=extract_biography(person),
        keywords=extract_keywords(person),
        affiliations=extract_employment(activities),
        education=extract_education(activities),
        publications=extract_works(works),
        publication_count=len(works.get("group") or []),
        affiliation=extract_primary_affiliation(activities),
        url=ORCID_URL_TEMPLATE.format(orcid=orcid),
        detailed=True,
    )
