from __future__ import annotations

import logging
import math
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from exo_enricher.job_queue import CancellationToken, JobQueue
from exo_enricher.mask import INCLUDE, mask_bit
from exo_enricher.schema import UNCLASSIFIED
from exo_enricher.visuals import EnrichedRecord, build_image_prompt

logger = logging.getLogger(__name__)

NOT_AN_EXOPLANET = "NOT AN EXOPLANET"


@dataclass
class Profile:
    id: str
    name: str
    included: bool
    bio: str
    tags: list[str]
    enriched: EnrichedRecord
    photos: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "included": self.included,
            "bio": self.bio,
            "tags": list(self.tags),
            "photos": list(self.photos),
            "record": self.enriched.to_dict(),
        }


def _bio(enriched: EnrichedRecord) -> str:
    record = enriched.record
    parts: list[str] = []
    if record.class_radius and record.class_radius != UNCLASSIFIED:
        parts.append(f"Class: {record.class_radius}")
    if record.teq_k is not None:
        parts.append(f"T_eq~{int(math.floor(record.teq_k + 0.5))} K")
    if record.radius_rearth is not None:
        parts.append(f"Radius~{record.radius_rearth:.1f} R_earth")
    return " · ".join(parts)


def build_profiles(
    enriched: Sequence[EnrichedRecord],
    mask: Sequence[int] | None,
    default: int = INCLUDE,
) -> list[Profile]:
    """Project every enriched record onto a profile card.

    Unlike ``apply_mask`` nothing is dropped: rows whose bit is 0 keep their
    data but are named as non-exoplanets. Rows past the end of the mask take
    ``default``.
    """
    profiles: list[Profile] = []
    for index, item in enumerate(enriched):
        fallback_name = item.record.planet_name or f"OBJ-{index + 1}"
        included = mask_bit(mask, index, default) == INCLUDE
        profiles.append(
            Profile(
                id=f"{fallback_name}-{index}",
                name=fallback_name if included else NOT_AN_EXOPLANET,
                included=included,
                bio=_bio(item),
                tags=[item.visual_params.palette.value, item.visual_params.texture.value],
                enriched=item,
            )
        )
    return profiles


def schedule_image_jobs(
    profiles: Sequence[Profile],
    queue: JobQueue,
    generate: Callable[[str, CancellationToken | None], str],
    token: CancellationToken | None = None,
    force_square: bool = True,
) -> dict[str, Future]:
    """Enqueue one image request per included profile that has no photo yet.

    Each finished image is prepended to the profile's photo list. Returns
    the queue futures keyed by profile id.
    """
    futures: dict[str, Future] = {}
    for profile in profiles:
        if not profile.included or profile.photos:
            continue
        prompt = build_image_prompt(profile.enriched.description, force_square=force_square)

        def _task(prompt: str = prompt) -> str:
            return generate(prompt, token)

        future = queue.enqueue(_task, token=token)
        future.add_done_callback(_attach_photo(profile))
        futures[profile.id] = future

    logger.info("Queued %d image jobs (%d pending in queue)", len(futures), queue.pending_count())
    return futures


def _attach_photo(profile: Profile) -> Callable[[Future], None]:
    def _callback(future: Future) -> None:
        if future.cancelled() or future.exception() is not None:
            return
        profile.photos.insert(0, future.result())

    return _callback
