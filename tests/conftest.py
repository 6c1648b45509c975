"""Shared fixtures for fontplan tests"""

import textwrap

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

from fontplan.core.axes import AxisResolver, parse_slopes, parse_weights, parse_widths
from fontplan.core.models import AxisSet

WEIGHTS = {
    "regular": {"shape": 400, "css": 400, "menu": 400},
    "bold": {"shape": 700, "css": 700, "menu": 700},
}
SLOPES = {"upright": "normal", "italic": "italic"}
WIDTHS = {
    "normal": {"shape": 500, "css": "normal", "menu": 5},
    "extended": {"shape": 600, "css": "expanded", "menu": 7},
}

BUILD_PLANS_TOML = textwrap.dedent('''
    [buildOptions]
    optimizeWithTtx = false

    [buildPlans.sans]
    family = "Sans"
    desc = "Default"
    spacing = "term"
    hintParams = ["-a", "sss"]

    [buildPlans.slab]
    family = "Sans Slab"
    serifs = "slab"
    slopes = { upright = "normal" }

    [weights.regular]
    shape = 400
    menu = 400
    css = 400

    [weights.bold]
    shape = 700
    menu = 700
    css = 700

    [slopes]
    upright = "normal"
    italic = "italic"

    [widths.normal]
    shape = 500
    menu = 5
    css = "normal"

    [widths.extended]
    shape = 600
    menu = 7
    css = "expanded"

    [collectPlans.pkg]
    from = ["sans", "slab"]

    [collectConfig]
    distinguishWeights = true
    distinguishSlope = true
''')


@pytest.fixture
def default_axes():
    return AxisSet(
        weights=parse_weights(WEIGHTS),
        slopes=parse_slopes(SLOPES),
        widths=parse_widths(WIDTHS),
    )


@pytest.fixture
def resolver():
    return AxisResolver()


@pytest.fixture
def project(tmp_path):
    """A project directory with build-plans.toml and VERSION"""
    (tmp_path / "build-plans.toml").write_text(BUILD_PLANS_TOML, encoding="utf-8")
    (tmp_path / "VERSION").write_text("1.2.3\n", encoding="utf-8")
    return tmp_path


def build_test_font(path, family, style, advance=500, weight=400):
    """Write a minimal TrueType font with a single outlined glyph"""
    pen = TTGlyphPen(None)
    pen.moveTo((0, 0))
    pen.lineTo((0, 700))
    pen.lineTo((advance, 700))
    pen.lineTo((advance, 0))
    pen.closePath()

    fb = FontBuilder(1000, isTTF=True)
    fb.setupGlyphOrder([".notdef", "A"])
    fb.setupCharacterMap({0x41: "A"})
    fb.setupGlyf({".notdef": TTGlyphPen(None).glyph(), "A": pen.glyph()})
    fb.setupHorizontalMetrics({".notdef": (500, 0), "A": (advance, 0)})
    fb.setupHorizontalHeader(ascent=800, descent=-200)
    fb.setupNameTable({"familyName": family, "styleName": style})
    fb.setupOS2(usWeightClass=weight)
    fb.setupPost()
    fb.save(str(path))
    return path
