"""
Font container and web font operations

These run in a worker thread (asyncio.to_thread) from the recipes. Inputs and
outputs are plain file paths.
"""

from pathlib import Path
from typing import List, Sequence

from fontTools.ttLib import TTCollection, TTFont

from ..utils.logging import FontPlanLogger


def _fonts_of(path: Path) -> List[TTFont]:
    if path.suffix.lower() in (".ttc", ".otc"):
        return list(TTCollection(str(path)).fonts)
    return [TTFont(str(path))]


def bundle_ttc(inputs: Sequence[Path], output: Path, share_tables: bool = True) -> int:
    """Write a TTC holding every font of `inputs`, in order.

    Inputs may themselves be collections; their fonts are inlined.

    Returns:
        Number of fonts in the written collection
    """
    collection = TTCollection()
    for path in inputs:
        collection.fonts.extend(_fonts_of(Path(path)))
    collection.save(str(output), shareTables=share_tables)
    FontPlanLogger.debug(f"Bundled {len(collection.fonts)} font(s) into {output}")
    return len(collection.fonts)


def compress_webfont(source: Path, output: Path, flavor: str = "woff2") -> None:
    """Convert a TrueType font into a WOFF or WOFF2 file"""
    font = TTFont(str(source))
    font.flavor = flavor
    font.save(str(output))
