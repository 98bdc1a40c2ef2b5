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
import asyncio
import json
import logging
from typing import Any, Awaitable, Dict, Optional

import typer
import yaml
from pydantic import BaseModel

from py_curalink.config import Settings
from py_curalink.errors import CuralinkError
from py_curalink.extractor.publications import PublicationEngine
from py_curalink.extractor.researchers import ResearcherIdentityResolver
from py_curalink.extractor.trials import TrialNormalizer
from py_curalink.favorites import FavoriteResolver
from py_curalink.models.favorite import ItemType
from py_curalink.models.recommendation import PatientAttributes
from py_curalink.recommendations import (
    RecommendationSynthesizer,
    StoreCandidateSource,
    UpstreamCandidateSource,
)
from py_curalink.store.postgres import PostgresStore
from py_curalink.transformers.trials import filter_trials

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = typer.Typer(help="Normalize and resolve external medical research data.")


def load_config(config_file: str | None) -> Dict[str, Any]:
    """Loads configuration from a YAML file."""
    if config_file:
        try:
            with open(config_file, "r") as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Config file not found: %s", config_file)
    return {}


@app.callback()
def main(
    ctx: typer.Context,
    config_file: str = typer.Option("config.yaml", help="Path to YAML config file."),
):
    """Load settings once for every command."""
    ctx.obj = Settings(**load_config(config_file))


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


def _run(coro: Awaitable[Any]) -> None:
    """Run a coroutine, print its result as JSON and map service errors to exit codes."""
    try:
        result = asyncio.run(coro)
    except CuralinkError as e:
        logger.error("%s failed: %s", e.source, e.kind)
        typer.echo(json.dumps({"error": e.message, "kind": e.kind}), err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(_dump(result), indent=2, default=str))


@app.command("search-trials")
def search_trials(
    ctx: typer.Context,
    condition: str = typer.Argument(..., help="Condition to search for."),
    location: Optional[str] = typer.Option(None, help="Location filter."),
    phase: Optional[str] = typer.Option(None, help="Keep trials whose phase contains this."),
    status: Optional[str] = typer.Option(None, help="Keep trials with this status."),
    max_results: Optional[int] = typer.Option(None, help="Page size."),
):
    """Search ClinicalTrials.gov."""
    settings: Settings = ctx.obj

    async def run():
        async with TrialNormalizer(settings) as trials:
            found = await trials.search_trials(condition, location, max_results)
        return filter_trials(found, phase=phase, status=status)

    _run(run())


@app.command("get-trial")
def get_trial(ctx: typer.Context, nct_id: str):
    """Fetch one trial by NCT number."""
    settings: Settings = ctx.obj

    async def run():
        async with TrialNormalizer(settings) as trials:
            return await trials.fetch_trial_by_id(nct_id)

    _run(run())


@app.command("search-publications")
def search_publications(
    ctx: typer.Context,
    query: str,
    max_results: Optional[int] = typer.Option(None, help="Maximum number of articles."),
):
    """Search PubMed."""
    settings: Settings = ctx.obj

    async def run():
        async with PublicationEngine(settings) as publications:
            return await publications.search_publications(query, max_results)

    _run(run())


@app.command("get-publication")
def get_publication(ctx: typer.Context, pmid: str):
    """Fetch one PubMed article by PMID."""
    settings: Settings = ctx.obj

    async def run():
        async with PublicationEngine(settings) as publications:
            return await publications.fetch_publication_by_id(pmid)

    _run(run())


@app.command("search-researchers")
def search_researchers(
    ctx: typer.Context,
    query: str,
    max_results: Optional[int] = typer.Option(None, help="Maximum number of profiles."),
    details: bool = typer.Option(True, help="Fetch each hit's full ORCID record."),
):
    """Search ORCID."""
    settings: Settings = ctx.obj

    async def run():
        async with ResearcherIdentityResolver(settings) as researchers:
            return await researchers.search_researchers(query, max_results, details)

    _run(run())


@app.command("get-researcher")
def get_researcher(ctx: typer.Context, orcid: str):
    """Fetch a full ORCID profile."""
    settings: Settings = ctx.obj

    async def run():
        async with ResearcherIdentityResolver(settings) as researchers:
            return await researchers.get_researcher_profile(orcid)

    _run(run())


@app.command("resolve-favorites")
def resolve_favorites(
    ctx: typer.Context,
    owner_id: str,
    item_type: Optional[ItemType] = typer.Option(None, case_sensitive=False),
):
    """Resolve an owner's favorites, falling back to the live registries."""
    settings: Settings = ctx.obj
    store = PostgresStore(settings.db_connection_string)

    async def run():
        async with TrialNormalizer(settings) as trials, PublicationEngine(settings) as publications:
            resolver = FavoriteResolver(store, trials, publications)
            return await resolver.resolve_for_owner(owner_id, item_type)

    _run(run())


@app.command("recommend")
def recommend(
    ctx: typer.Context,
    condition: Optional[str] = typer.Option(None),
    country: Optional[str] = typer.Option(None),
    location: Optional[str] = typer.Option(None),
    live: bool = typer.Option(False, help="Search the live registries for trials and publications."),
):
    """Build patient recommendations."""
    settings: Settings = ctx.obj
    store = PostgresStore(settings.db_connection_string)
    patient = PatientAttributes(condition=condition, country=country, location=location)

    async def run():
        async with TrialNormalizer(settings) as trials, PublicationEngine(settings) as publications:
            source = (
                UpstreamCandidateSource(trials, publications, store)
                if live
                else StoreCandidateSource(store)
            )
            synthesizer = RecommendationSynthesizer(source, limit=settings.recommendation_limit)
            return await synthesizer.synthesize_recommendations(patient)

    _run(run())


if __name__ == "__main__":
    app()
