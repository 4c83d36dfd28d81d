#!/usr/bin/env python3
"""
Fake earthquake generator

Writes a FeatureCollection of randomly placed points with a ``magnitude``
property between 1 and 9, for benchmarking cluster loads.
"""

import argparse
import json
from pathlib import Path

import numpy as np
import structlog


logger = structlog.get_logger()


def write_earthquakes(path: Path, num_features: int, seed=None) -> int:
    """
    Stream ``num_features`` random point features to ``path``.

    Returns:
        Number of features written
    """
    rng = np.random.default_rng(seed)
    lons = 360 * rng.random(num_features) - 180
    lats = 180 * rng.random(num_features) - 90
    magnitudes = np.round(800 * rng.random(num_features) + 100) / 100

    with open(path, 'w') as f:
        f.write('{\n  "type": "FeatureCollection",\n  "features": [\n')
        for i in range(num_features):
            feature = {
                "type": "Feature",
                "properties": {"magnitude": float(magnitudes[i])},
                "geometry": {
                    "type": "Point",
                    "coordinates": [float(lons[i]), float(lats[i])]
                }
            }
            f.write((',\n    ' if i else '    ') + json.dumps(feature))
        f.write('\n  ]\n}')

    return num_features


def main() -> None:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("num_features", type=int, help="Number of points to generate")
    ap.add_argument("--output", default="fake-earthquakes.geojson", help="Output file")
    ap.add_argument("--seed", type=int, default=None, help="Random seed")
    args = ap.parse_args()

    if args.num_features < 0:
        ap.error("num_features must not be negative")

    written = write_earthquakes(Path(args.output), args.num_features, args.seed)
    logger.info("Generated fake earthquakes", features=written, output=args.output)


if __name__ == "__main__":
    main()
