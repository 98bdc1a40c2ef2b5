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
"""Parsing and merging for the three PubMed E-utilities stages.

The abstract parser targets the ``efetch`` PubmedArticleSet document only:
it walks ``PubmedArticle`` blocks, takes the citation's ``PMID`` and the
``Abstract/AbstractText`` fragments inside. It does not aim to read
arbitrary markup (book articles and ``OtherAbstract`` blocks are ignored).
"""

import logging
import re
from typing import Any

from lxml import etree as ET

from py_curalink.concurrency import map_settled
from py_curalink.models.publication import NO_ABSTRACT, CanonicalPublication

PMID_PATTERN = re.compile(r"^\d+$")
PMID_MIN_LENGTH = 7
PUBMED_URL_TEMPLATE = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
MAX_DISPLAY_AUTHORS = 3

logger = logging.getLogger(__name__)


def is_publication_external_id(value: Any) -> bool:
    """Return True if ``value`` looks like a PMID: all digits, at least 7 of them.

    Internal numeric ids of seven or more digits are indistinguishable
    from PMIDs under this rule.
    """
    return (
        isinstance(value, str)
        and PMID_PATTERN.match(value) is not None
        and len(value) >= PMID_MIN_LENGTH
    )


def parse_id_list(payload: Any) -> list[str] | None:
    """Return the ordered id list of an esearch payload, or None if unreadable."""
    if not isinstance(payload, dict):
        return None
    result = payload.get("esearchresult")
    if not isinstance(result, dict):
        return None
    id_list = result.get("idlist", [])
    if not isinstance(id_list, list):
        return None
    return [str(pmid) for pmid in id_list]


def parse_summaries(payload: Any) -> dict[str, dict[str, Any]] | None:
    """Return esummary records keyed by PMID, or None if unreadable."""
    if not isinstance(payload, dict) or not isinstance(payload.get("result"), dict):
        return None
    return {
        key: value
        for key, value in payload["result"].items()
        if key != "uids" and isinstance(value, dict)
    }


def _fragment_text(element: ET._Element) -> str:
    # itertext() drops inner tags such as <i>, <sup> and <b>.
    return "".join(element.itertext()).strip()


def parse_abstracts(xml_content: str | bytes) -> dict[str, str]:
    """Extract abstract text per PMID from an efetch XML document.

    Multiple ``AbstractText`` fragments (structured abstracts) are joined
    with a blank line. Articles without any non-empty fragment are left out
    of the result.
    """
    if not xml_content or not xml_content.strip():
        return {}

    xml_bytes = (
        xml_content.encode("utf-8") if isinstance(xml_content, str) else xml_content
    )
    parser = ET.XMLParser(recover=True, resolve_entities=False, no_network=True)
    try:
        root = ET.fromstring(xml_bytes, parser=parser)
    except ET.XMLSyntaxError as e:
        logger.warning("Could not parse PubMed abstract document: %s", e)
        return {}

    if root is None:
        return {}

    abstracts: dict[str, str] = {}
    articles = [root] if root.tag == "PubmedArticle" else root.iter("PubmedArticle")
    for article in articles:
        pmid = article.findtext("MedlineCitation/PMID") or article.findtext(".//PMID")
        if not pmid:
            continue
        fragments = [
            text
            for text in (
                _fragment_text(node) for node in article.iterfind(".//Abstract/AbstractText")
            )
            if text
        ]
        if fragments:
            abstracts[pmid.strip()] = "\n\n".join(fragments)
    return abstracts


def format_authors(names: list[str]) -> str:
    """Render up to three author names, adding ' et al.' when more exist."""
    if not names:
        return "Unknown"
    display = ", ".join(names[:MAX_DISPLAY_AUTHORS])
    if len(names) > MAX_DISPLAY_AUTHORS:
        display += " et al."
    return display


def relevance_score(index: int, total: int) -> float:
    """Score for the hit at zero-based ``index`` out of ``total`` ids."""
    return 1.0 - (index / total)


def build_publication(
    pmid: str,
    summary: dict[str, Any],
    abstract: str | None,
    score: float,
) -> CanonicalPublication | None:
    """Merge one esummary record with its abstract; None if it has no title."""
    title = summary.get("title")
    if not title:
        return None

    author_names = [
        author["name"]
        for author in summary.get("authors") or []
        if isinstance(author, dict) and author.get("name")
    ]
    return CanonicalPublication(
        id=pmid,
        title=title,
        authors=format_authors(author_names),
        author_names=author_names,
        journal=summary.get("fulljournalname") or summary.get("source") or "Unknown",
        publication_date=summary.get("pubdate") or "Unknown",
        abstract=abstract or NO_ABSTRACT,
        doi=summary.get("elocationid") or None,
        url=PUBMED_URL_TEMPLATE.format(pmid=pmid),
        relevance_score=score,
    )


def merge_publications(
    ids: list[str],
    summaries: dict[str, dict[str, Any]],
    abstracts: dict[str, str],
) -> list[CanonicalPublication]:
    """Merge the three stages by id, keeping the esearch order.

    Each record is built in isolation; a record that fails validation is
    logged and skipped.
    """
    total = len(ids)

    def build(entry: tuple[int, str]) -> CanonicalPublication | None:
        index, pmid = entry
        summary = summaries.get(pmid)
        if summary is None:
            logger.warning("No summary returned for PMID %s; skipping.", pmid)
            return None
        publication = build_publication(
            pmid, summary, abstracts.get(pmid), relevance_score(index, total),
        )
        if publication is None:
            logger.info("Dropping PMID %s: record has no title.", pmid)
        return publication

    publications = []
    for outcome in map_settled(build, enumerate(ids)):
        if not outcome.ok:
            logger.warning(
                "Skipping PMID %s that failed to normalize: %s", outcome.item[1], outcome.error,
            )
        elif outcome.value is not None:
            publications.append(outcome.value)
    return publications
