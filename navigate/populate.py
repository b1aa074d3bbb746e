"""Write the sample dataset as a JSON dataset directory.

Usage::

    navigate-populate --out ./data/navigate
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from navigate.models import Dataset
from navigate.sample_data import build_sample_dataset
from navigate.store import COLLECTION_FILES, METADATA_FILE, build_metadata

log = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("data") / "navigate"


def write_json_dataset(dataset: Dataset, out_dir: str | Path) -> dict[str, Any]:
    """Write one file per collection plus ``metadata.json``; returns the metadata written."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    for key, filename in COLLECTION_FILES.items():
        records = [r.model_dump(mode="json", exclude_none=True) for r in getattr(dataset, key)]
        (out_dir / filename).write_text(json.dumps(records, ensure_ascii=False, indent=2), encoding="utf-8")
        log.info("Wrote %d %s to %s", len(records), key, out_dir / filename)

    metadata = build_metadata(dataset).model_dump(mode="json")
    (out_dir / METADATA_FILE).write_text(json.dumps(metadata, indent=2), encoding="utf-8")
    return metadata


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Write the NAVIGATE sample dataset as JSON files.")
    parser.add_argument("--out", default=str(DEFAULT_OUTPUT), help="Output directory")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = _parse_args(argv)
    out_dir = Path(args.out).expanduser().resolve()
    metadata = write_json_dataset(build_sample_dataset(), out_dir)
    print(json.dumps({"status": "ok", "output": str(out_dir), "counts": metadata["counts"]}, indent=2))


if __name__ == "__main__":
    main()
