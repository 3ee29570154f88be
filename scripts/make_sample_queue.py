#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import random
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from resolution_lab.core.samples import generate_work_items


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate sample work items (customer record + chat transcript) as JSON")
    parser.add_argument("--output", required=True, help="Output file path (.json)")
    parser.add_argument("--count", type=int, default=5, help="Number of items")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible samples")
    args = parser.parse_args()

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)

    items = generate_work_items(args.count, rng=random.Random(args.seed))
    with output.open("w", encoding="utf-8") as fp:
        json.dump([item.model_dump(mode="json") for item in items], fp, indent=2, ensure_ascii=False)

    print(f"{len(items)} sample work item(s) written to {output}")


if __name__ == "__main__":
    main()
