from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from exo_enricher.enricher import EnrichmentPipeline, PipelineConfig
from exo_enricher.mask import EXCLUDE, INCLUDE, load_mask, parse_mask


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="exo-enricher",
        description="Harmonize exoplanet catalog rows (NASA archive, TOI, KOI), derive missing physics and build prompts.",
    )
    parser.add_argument(
        "--input",
        action="append",
        required=True,
        help="Input CSV/Excel/JSON path (use multiple times for multiple files).",
    )
    parser.add_argument(
        "--mask",
        default=None,
        help="Inclusion mask: a file of 0/1 values or an inline comma list like 1,0,1.",
    )
    parser.add_argument(
        "--mask-default",
        type=int,
        choices=[EXCLUDE, INCLUDE],
        default=EXCLUDE,
        help="Bit assumed for rows past the end of the mask when selecting rows (default: 0).",
    )
    parser.add_argument(
        "--max-rows-per-file",
        type=int,
        default=None,
        help="Max rows to process from each input file (default: all).",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Output directory for enriched CSV and prompt/profile JSON.",
    )
    parser.add_argument(
        "--albedo",
        type=float,
        default=0.3,
        help="Bond albedo used for equilibrium temperature estimates (default: 0.3).",
    )
    parser.add_argument(
        "--tidal-lock-days",
        type=float,
        default=10.0,
        help="Orbital period below which a planet is drawn as tidally locked (default: 10).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker threads for per-row processing.",
    )
    parser.add_argument(
        "--generate-images",
        action="store_true",
        help="Queue one image generation request per selected row.",
    )
    parser.add_argument(
        "--image-interval-s",
        type=float,
        default=25.0,
        help="Minimum seconds between image requests (default: 25).",
    )
    parser.add_argument(
        "--persist-url",
        default=None,
        help="POST each selected enriched record as JSON to this URL.",
    )
    parser.add_argument(
        "--timeout-s",
        type=float,
        default=8.0,
        help="HTTP timeout seconds for persistence requests.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )
    return parser


def _resolve_mask(value: str | None) -> list[int] | None:
    if value is None:
        return None
    path = Path(value)
    if path.exists():
        return load_mask(path)
    return parse_mask(token for token in value.split(",") if token.strip())


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    input_paths = [Path(value) for value in args.input]
    for input_path in input_paths:
        if not input_path.exists():
            parser.error(f"Input file does not exist: {input_path}")
    if not 0.0 <= args.albedo <= 1.0:
        parser.error("--albedo must be between 0 and 1")

    try:
        mask = _resolve_mask(args.mask)
    except (OSError, ValueError) as error:
        parser.error(f"Could not read mask: {error}")

    config = PipelineConfig(
        max_rows_per_file=args.max_rows_per_file,
        output_dir=Path(args.output_dir),
        albedo=args.albedo,
        tidal_lock_period_days=args.tidal_lock_days,
        selection_mask_default=args.mask_default,
        workers=args.workers,
        generate_images=args.generate_images,
        image_min_interval_s=args.image_interval_s,
        persist_endpoint=args.persist_url,
        timeout_s=args.timeout_s,
    )

    pipeline = EnrichmentPipeline(config)
    try:
        summary = pipeline.run(input_paths, mask=mask)
    except ValueError as error:
        parser.error(str(error))
    except KeyboardInterrupt:
        pipeline.cancel()
        raise
    print(json.dumps(summary, ensure_ascii=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
