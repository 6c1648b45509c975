"""Web font stylesheet generation"""

from typing import List, Sequence, Tuple

from ..core.models import FontMetadata

# (directory / extension, CSS format name)
WEBFONT_FORMATS: List[Tuple[str, str]] = [
    ("woff2", "woff2"),
    ("ttf", "truetype"),
]


def font_face(family: str, metadata: FontMetadata, formats: Sequence[Tuple[str, str]]) -> str:
    sources = ", ".join(
        f"url('{ext}/{metadata.name}.{ext}') format('{fmt}')" for ext, fmt in formats
    )
    return (
        "@font-face {\n"
        f"\tfont-family: '{family} Web';\n"
        "\tfont-display: swap;\n"
        f"\tfont-weight: {_css_number(metadata.css_weight)};\n"
        f"\tfont-stretch: {metadata.css_stretch};\n"
        f"\tfont-style: {metadata.css_style};\n"
        f"\tsrc: {sources};\n"
        "}\n"
    )


def _css_number(value) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def make_webfont_css(
    family: str,
    fonts: Sequence[FontMetadata],
    formats: Sequence[Tuple[str, str]] = WEBFONT_FORMATS,
) -> str:
    """One @font-face block per font, in target order"""
    return "\n".join(font_face(family, metadata, formats) for metadata in fonts)
