# === NAVMAP v1 ===
# {
#   "module": "Pokedex.SpriteDownload.pipeline",
#   "purpose": "Fetch pass orchestration and remote catalog listing",
#   "sections": [
#     {
#       "id": "entityoutcome",
#       "name": "EntityOutcome",
#       "anchor": "class-entityoutcome",
#       "kind": "class"
#     },
#     {
#       "id": "runresult",
#       "name": "RunResult",
#       "anchor": "class-runresult",
#       "kind": "class"
#     },
#     {
#       "id": "spritepipeline",
#       "name": "SpritePipeline",
#       "anchor": "class-spritepipeline",
#       "kind": "class"
#     },
#     {
#       "id": "build-resolver",
#       "name": "_build_resolver",
#       "anchor": "function-build-resolver",
#       "kind": "function"
#     },
#     {
#       "id": "run-download",
#       "name": "run_download",
#       "anchor": "function-run-download",
#       "kind": "function"
#     },
#     {
#       "id": "list-catalog",
#       "name": "list_catalog",
#       "anchor": "function-list-catalog",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Fetch pass orchestration.

Every id of the configured range is submitted to a thread pool up front; at
most ``download.concurrency`` per-entity pipelines (resolve → process →
write) run at any instant, and the shared :class:`BoundedFetcher` caps
simultaneous HTTP exchanges independently of that. Pipelines share no mutable
state, so their completion order is irrelevant to the result.

Failures are captured at the entity boundary as :class:`EntityOutcome`
values and end up in the run summary; only setup errors escape
:func:`run_download`.
"""

from __future__ import annotations

import logging
import random
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

import httpx

from Pokedex.concurrency import iter_completed
from Pokedex.SpriteDownload.artifacts import ArtifactProcessor
from Pokedex.SpriteDownload.cancellation import CancellationToken
from Pokedex.SpriteDownload.config.models import SpriteDownloadConfig
from Pokedex.SpriteDownload.errors import describe_error, log_entity_failure
from Pokedex.SpriteDownload.metadata import MetadataRecord, MetadataWriter, OutputLayout
from Pokedex.SpriteDownload.networking import BoundedFetcher
from Pokedex.SpriteDownload.resolvers import CatalogListing, SpriteResolver

LOGGER = logging.getLogger(__name__)

OutcomeStatus = Literal["success", "error", "cancelled"]


@dataclass
class EntityOutcome:
    """Result of one per-entity pipeline."""

    entity_id: int
    status: OutcomeStatus
    record: Optional[MetadataRecord] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def success(cls, record: MetadataRecord) -> "EntityOutcome":
        return cls(entity_id=record.id, status="success", record=record)

    @classmethod
    def failure(cls, entity_id: int, exc: BaseException) -> "EntityOutcome":
        return cls(
            entity_id=entity_id,
            status="error",
            error=describe_error(exc),
            error_type=type(exc).__name__,
        )

    @classmethod
    def cancelled(cls, entity_id: int) -> "EntityOutcome":
        return cls(entity_id=entity_id, status="cancelled")

    def to_summary_entry(self) -> Dict[str, Any]:
        if self.record is not None:
            return self.record.to_json_dict()
        return {"id": self.entity_id, "error": self.error}


@dataclass
class RunResult:
    """Aggregate of one fetch pass, in completion order."""

    outcomes: List[EntityOutcome] = field(default_factory=list)
    summary_path: Optional[Path] = None

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == "success")

    @property
    def error_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == "error")

    @property
    def cancelled_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == "cancelled")

    def failures_by_reason(self) -> Dict[str, int]:
        return dict(
            Counter(o.error_type or "unknown" for o in self.outcomes if o.status == "error")
        )


class SpritePipeline:
    """Run resolve → process → write for individual entity ids."""

    def __init__(
        self,
        resolver: SpriteResolver,
        processor: ArtifactProcessor,
        writer: MetadataWriter,
        *,
        pause_s: float = 0.05,
        pause_jitter_s: float = 0.1,
        cancel_token: Optional[CancellationToken] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.resolver = resolver
        self.processor = processor
        self.writer = writer
        self.pause_s = pause_s
        self.pause_jitter_s = pause_jitter_s
        self.cancel_token = cancel_token or CancellationToken()
        self._sleep = sleep
        self._rng = rng or random.Random()

    def process_entity(self, entity_id: int) -> EntityOutcome:
        if self.cancel_token.is_cancelled():
            return EntityOutcome.cancelled(entity_id)

        try:
            asset = self.resolver.resolve(entity_id)
            artifact = self.processor.process(asset.content, label=f"#{entity_id}")
            record = self.writer.write(asset, artifact)
        except Exception as exc:
            LOGGER.debug("Entity #%s failed", entity_id, exc_info=True)
            log_entity_failure(LOGGER, entity_id, exc)
            return EntityOutcome.failure(entity_id, exc)

        pause = self.pause_s
        if self.pause_jitter_s > 0:
            pause += self._rng.uniform(0.0, self.pause_jitter_s)
        if pause > 0:
            self._sleep(pause)
        return EntityOutcome.success(record)

    def run(self, entity_ids: Iterable[int], *, workers: int) -> RunResult:
        result = RunResult()
        for outcome in iter_completed(self.process_entity, list(entity_ids), workers=workers):
            result.outcomes.append(outcome)

        if result.cancelled_count:
            LOGGER.warning(
                "Run cancelled (%s); %d id(s) were not started",
                self.cancel_token.reason or "no reason given",
                result.cancelled_count,
            )

        entries = [o.to_summary_entry() for o in result.outcomes if o.status != "cancelled"]
        result.summary_path = self.writer.write_summary(entries)
        LOGGER.info("Download complete. Summary written to %s", result.summary_path)
        return result


def _build_resolver(
    config: SpriteDownloadConfig,
    fetcher: BoundedFetcher,
    *,
    sleep: Callable[[float], None],
    rng: Optional[random.Random],
) -> SpriteResolver:
    policy = config.download
    return SpriteResolver(
        fetcher,
        api_base=config.api.base_url,
        candidate_delay_s=policy.candidate_delay_ms / 1000.0,
        candidate_jitter_s=policy.candidate_jitter_ms / 1000.0,
        list_page_size=config.api.list_page_size,
        sleep=sleep,
        rng=rng,
    )


def run_download(
    config: SpriteDownloadConfig,
    *,
    entity_ids: Optional[Iterable[int]] = None,
    cancel_token: Optional[CancellationToken] = None,
    transport: Optional[httpx.BaseTransport] = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
) -> RunResult:
    """Execute the fetch pass described by ``config``.

    Raises:
        OutputSetupError: The output directory tree cannot be created.
    """

    policy = config.download
    layout = OutputLayout(policy.out_dir).ensure()
    ids = list(entity_ids) if entity_ids is not None else list(policy.id_range())
    LOGGER.info(
        "Starting sprite download for %d id(s) into %s (concurrency=%d, config=%s)",
        len(ids),
        layout.root,
        policy.concurrency,
        config.config_hash()[:8],
    )

    with BoundedFetcher.from_config(config, transport=transport, sleep=sleep) as fetcher:
        resolver = _build_resolver(config, fetcher, sleep=sleep, rng=rng)
        pipeline = SpritePipeline(
            resolver,
            ArtifactProcessor(thumb_size=policy.thumb_size, thumb_quality=policy.thumb_quality),
            MetadataWriter(layout),
            pause_s=policy.entity_pause_ms / 1000.0,
            pause_jitter_s=policy.entity_jitter_ms / 1000.0,
            cancel_token=cancel_token,
            sleep=sleep,
            rng=rng,
        )
        return pipeline.run(ids, workers=policy.concurrency)


def list_catalog(
    config: SpriteDownloadConfig,
    *,
    limit: int,
    offset: int = 0,
    transport: Optional[httpx.BaseTransport] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[CatalogListing]:
    """Read ``limit`` rows of the remote list endpoint starting at ``offset``.

    Raises:
        FetchError: A list page could not be fetched or parsed.
    """

    with BoundedFetcher.from_config(config, transport=transport, sleep=sleep) as fetcher:
        resolver = _build_resolver(config, fetcher, sleep=sleep, rng=None)
        listings = resolver.list_entities(limit, offset)
    LOGGER.info("Listed %d entit(ies) from offset %d", len(listings), offset)
    return listings
