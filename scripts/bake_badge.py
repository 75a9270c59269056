"""Bake a hosted-assertion URL into a PNG badge image.

Writes an ``openbadges`` text chunk carrying the URL, which is what the
backpack reads back on upload.

Run with:
    python scripts/bake_badge.py badge.png https://issuer.example/assertions/1 -o baked.png
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from PIL import Image
from PIL.PngImagePlugin import PngInfo

from backpack.services.image_extractor import BAKED_KEYWORD, extract


def bake(source: Path, assertion_url: str, output: Path) -> None:
    with Image.open(source) as img:
        info = PngInfo()
        # Keep whatever text the image already carries, minus an old bake.
        for key, value in getattr(img, "text", {}).items():
            if key != BAKED_KEYWORD:
                info.add_text(key, value)
        info.add_text(BAKED_KEYWORD, assertion_url)
        img.save(output, format="PNG", pnginfo=info)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("image", type=Path, help="source image (any format Pillow reads)")
    parser.add_argument("assertion_url", help="URL of the hosted assertion")
    parser.add_argument("-o", "--output", type=Path, help="output PNG (default: <image>.baked.png)")
    args = parser.parse_args()

    output = args.output or args.image.with_suffix(".baked.png")
    bake(args.image, args.assertion_url, output)

    # Read it back the same way an upload would.
    extracted = extract(output.read_bytes())
    print(f"Baked {extracted.assertion_url} into {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
