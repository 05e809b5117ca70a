from __future__ import annotations

import csv
import json
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

from exo_enricher.classification import annotate
from exo_enricher.harmonize import coerce_source_kind, detect_source, harmonize_record
from exo_enricher.job_queue import CancellationToken, JobQueue
from exo_enricher.mask import EXCLUDE, INCLUDE, apply_mask
from exo_enricher.physics import DEFAULT_ALBEDO, derive_physical
from exo_enricher.profiles import build_profiles, schedule_image_jobs
from exo_enricher.schema import CanonicalRecord, SourceKind, serialize_record
from exo_enricher.sources import GEMINI_IMAGE_ENDPOINT, ImageGenerationClient, PersistenceClient
from exo_enricher.tabular import read_rows
from exo_enricher.visuals import (
    DEFAULT_TIDAL_LOCK_PERIOD_DAYS,
    ENRICHED_COLUMNS,
    EnrichedRecord,
    enrich_record,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    max_rows_per_file: int | None = None
    output_dir: Path = Path("output")
    enriched_filename: str = "enriched.csv"
    prompts_filename: str = "prompts.json"
    profiles_filename: str = "profiles.json"
    albedo: float = DEFAULT_ALBEDO
    tidal_lock_period_days: float = DEFAULT_TIDAL_LOCK_PERIOD_DAYS
    # Mask bit assumed for rows past the end of the mask, per call site.
    selection_mask_default: int = EXCLUDE
    profile_mask_default: int = INCLUDE
    workers: int = 1
    generate_images: bool = False
    image_min_interval_s: float = 25.0
    image_endpoint: str = GEMINI_IMAGE_ENDPOINT
    image_api_key: str | None = None
    image_default_backoff_s: float = 30.0
    image_timeout_s: float = 60.0
    force_square: bool = True
    persist_endpoint: str | None = None
    timeout_s: float = 8.0


def derive_record(
    raw: Mapping[str, Any] | None,
    kind: SourceKind | str | None = None,
    albedo: float = DEFAULT_ALBEDO,
) -> CanonicalRecord:
    """Harmonize, derive and classify a single raw row."""
    return annotate(derive_physical(harmonize_record(raw, kind), albedo=albedo))


def process_dataset(
    rows: Sequence[Mapping[str, Any]],
    kind: SourceKind | str | None = None,
    albedo: float = DEFAULT_ALBEDO,
    workers: int = 1,
) -> list[CanonicalRecord]:
    """Run the per-row chain over a batch, keeping input order.

    The source kind is detected once from the first row unless given.
    """
    if not rows:
        return []
    batch_kind = coerce_source_kind(kind) if kind is not None else detect_source(rows[0])
    if workers <= 1 or len(rows) < 2:
        records = [derive_record(row, batch_kind, albedo) for row in rows]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(rows))) as pool:
            records = list(pool.map(lambda row: derive_record(row, batch_kind, albedo), rows))

    unsized = sum(1 for record in records if "radius_rearth" in record.missing_fields())
    if unsized:
        logger.info("%d of %d %s rows have no radius after derivation", unsized, len(records), batch_kind.value)
    return records


def build_enriched_records(
    records: Sequence[CanonicalRecord],
    tidal_lock_period_days: float = DEFAULT_TIDAL_LOCK_PERIOD_DAYS,
) -> list[EnrichedRecord]:
    return [enrich_record(record, tidal_lock_period_days=tidal_lock_period_days) for record in records]


class EnrichmentPipeline:
    def __init__(
        self,
        config: PipelineConfig,
        image_client: ImageGenerationClient | None = None,
        persistence_client: PersistenceClient | None = None,
        queue: JobQueue | None = None,
    ) -> None:
        self.config = config
        self.image_client = image_client
        if self.image_client is None and config.generate_images:
            self.image_client = ImageGenerationClient(
                api_key=config.image_api_key,
                endpoint=config.image_endpoint,
                timeout_s=config.image_timeout_s,
                default_backoff_s=config.image_default_backoff_s,
            )
        self.persistence_client = persistence_client
        if self.persistence_client is None and config.persist_endpoint:
            self.persistence_client = PersistenceClient(config.persist_endpoint, timeout_s=config.timeout_s)
        self.queue = queue or JobQueue(config.image_min_interval_s, name="image-queue")
        self.token = CancellationToken()

    def enrich_rows(self, rows: Sequence[Mapping[str, Any]]) -> list[EnrichedRecord]:
        records = process_dataset(rows, albedo=self.config.albedo, workers=self.config.workers)
        return build_enriched_records(records, tidal_lock_period_days=self.config.tidal_lock_period_days)

    def run(self, input_paths: list[Path], mask: Sequence[int] | None = None) -> dict[str, Any]:
        """Enrich every input file and write the outputs.

        The mask is aligned with the concatenated rows of all inputs. Without a
        mask every row is selected.
        """
        enriched: list[EnrichedRecord] = []
        per_file_rows: dict[str, int] = {}
        source_kinds: dict[str, str] = {}

        for input_path in input_paths:
            rows = read_rows(input_path, max_rows=self.config.max_rows_per_file)
            per_file_rows[input_path.name] = len(rows)
            source_kinds[input_path.name] = detect_source(rows[0] if rows else None).value
            enriched.extend(self.enrich_rows(rows))
            logger.info("Processed %d rows from %s (%s)", len(rows), input_path.name, source_kinds[input_path.name])

        selection_default = INCLUDE if mask is None else self.config.selection_mask_default
        selected_indices = apply_mask(range(len(enriched)), mask, default=selection_default)
        selected = [enriched[index] for index in selected_indices]
        profiles = build_profiles(enriched, mask, default=self.config.profile_mask_default)

        output_dir = self.config.output_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        enriched_path = output_dir / self.config.enriched_filename
        prompts_path = output_dir / self.config.prompts_filename
        profiles_path = output_dir / self.config.profiles_filename

        self._write_csv(enriched_path, ENRICHED_COLUMNS, [item.to_dict() for item in enriched])
        self._write_json(prompts_path, [item.to_dict() for item in selected])

        persisted = 0
        if self.persistence_client is not None:
            persisted = sum(1 for item in selected if self.persistence_client.post_record(item.to_dict()))

        images_generated = 0
        images_failed = 0
        if self.image_client is not None and self.config.generate_images:
            futures = schedule_image_jobs(
                [profiles[index] for index in selected_indices],
                self.queue,
                self.image_client.generate,
                token=self.token,
                force_square=self.config.force_square,
            )
            wait(list(futures.values()))
            # Photos are attached by done-callbacks on the queue thread.
            self.queue.wait_idle()
            for future in futures.values():
                if future.cancelled() or future.exception() is not None:
                    images_failed += 1
                else:
                    images_generated += 1

        self._write_json(profiles_path, [profile.to_dict() for profile in profiles])

        summary = {
            "rows_processed": len(enriched),
            "rows_selected": len(selected),
            "rows_processed_per_file": per_file_rows,
            "source_kinds": source_kinds,
            "records_persisted": persisted,
            "images_generated": images_generated,
            "images_failed": images_failed,
            "output_path": str(enriched_path),
            "prompts_path": str(prompts_path),
            "profiles_path": str(profiles_path),
        }
        return summary

    def cancel(self) -> None:
        if self.queue.is_draining():
            logger.info("Cancelling image queue with %d pending jobs", self.queue.pending_count())
        self.token.cancel()

    def _write_json(self, path: Path, payload: Any) -> None:
        path.write_text(json.dumps(payload, ensure_ascii=True, indent=2), encoding="utf-8")

    def _write_csv(self, path: Path, columns: list[str], rows: list[dict[str, Any]]) -> None:
        with path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=columns)
            writer.writeheader()
            for row in rows:
                writer.writerow(serialize_record(row, columns))
