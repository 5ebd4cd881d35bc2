"""
Color Blender — Category Colors Mixed in OKLab

Each category has a base color in OKLCH. When several findings cover
the same segment their colors are averaged in OKLab (weighted by
severity) and converted back to display sRGB. Averaging saturated hues
in RGB collapses toward gray; OKLab keeps the mix coherent.

Alpha treats each finding as an independent partial coverage:
    alpha = min(cap, 1 - prod(1 - w_i))
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from spanlens.config import settings
from spanlens.schemas.annotation import Annotation

# Dark-theme friendly palette: bias magenta, fallacy amber, tactic cyan.
# factcheck is reserved and doubles as the fallback for unknown categories.
CATEGORY_OKLCH: dict[str, tuple[float, float, float]] = {
    "bias": (0.72, 0.14, 340.0),
    "fallacy": (0.74, 0.13, 75.0),
    "tactic": (0.74, 0.12, 210.0),
    "factcheck": (0.72, 0.13, 280.0),
}
FALLBACK_CATEGORY = "factcheck"

SEVERITY_WEIGHT: dict[str, float] = {
    "low": 0.14,
    "medium": 0.26,
    "high": 0.40,
}


@dataclass(frozen=True)
class BlendedColor:
    r: int
    g: int
    b: int
    alpha: float

    def css(self, alpha: Optional[float] = None) -> str:
        a = self.alpha if alpha is None else alpha
        return f"rgba({self.r}, {self.g}, {self.b}, {round(a, 4)})"


def severity_weight(severity: str) -> float:
    return SEVERITY_WEIGHT.get(severity, SEVERITY_WEIGHT["low"])


def category_oklch(category: str) -> tuple[float, float, float]:
    return CATEGORY_OKLCH.get(category, CATEGORY_OKLCH[FALLBACK_CATEGORY])


# ============================================================
# COLOR SPACE CONVERSIONS
# ============================================================

def oklch_to_oklab(L: float, C: float, h: float) -> tuple[float, float, float]:
    hr = math.radians(h)
    return L, C * math.cos(hr), C * math.sin(hr)


def oklab_to_linear_srgb(L: float, a: float, b: float) -> tuple[float, float, float]:
    """OKLab -> linear sRGB (Björn Ottosson's reference matrices)."""
    l_ = L + 0.3963377774 * a + 0.2158037573 * b
    m_ = L - 0.1055613458 * a - 0.0638541728 * b
    s_ = L - 0.0894841775 * a - 1.2914855480 * b

    l, m, s = l_ ** 3, m_ ** 3, s_ ** 3

    return (
        +4.0767416621 * l - 3.3077115913 * m + 0.2309699292 * s,
        -1.2684380046 * l + 2.6097574011 * m - 0.3413193965 * s,
        -0.0041960863 * l - 0.7034186147 * m + 1.7076147010 * s,
    )


def linear_to_srgb_channel(x: float) -> float:
    x = min(1.0, max(0.0, x))
    return 12.92 * x if x <= 0.0031308 else 1.055 * x ** (1 / 2.4) - 0.055


def oklab_to_rgb(L: float, a: float, b: float) -> tuple[int, int, int]:
    lin = oklab_to_linear_srgb(L, a, b)
    r, g, bl = (round(255 * linear_to_srgb_channel(c)) for c in lin)
    return r, g, bl


def oklch_to_rgb(L: float, C: float, h: float) -> tuple[int, int, int]:
    return oklab_to_rgb(*oklch_to_oklab(L, C, h))


def category_rgb(category: str) -> tuple[int, int, int]:
    return oklch_to_rgb(*category_oklch(category))


def theme_variables() -> dict[str, str]:
    """CSS custom properties: '--type-<category>' -> 'r g b'."""
    out = {}
    for category in CATEGORY_OKLCH:
        r, g, b = category_rgb(category)
        out[f"--type-{category}"] = f"{r} {g} {b}"
    out["--brand"] = out[f"--type-{FALLBACK_CATEGORY}"]
    return out


# ============================================================
# BLENDING
# ============================================================

def combined_alpha(weights: Iterable[float], cap: Optional[float] = None) -> float:
    if cap is None:
        cap = settings.ALPHA_CAP
    remaining = 1.0
    for w in sorted(weights):
        remaining *= 1.0 - w
    return min(cap, 1.0 - remaining)


def blend(
    covering: Iterable[Annotation],
    cap: Optional[float] = None,
) -> Optional[BlendedColor]:
    """
    Blend the colors of every annotation covering a segment.

    Returns None for an empty covering set (plain text). The sum runs in a
    fixed (category, severity) order so any permutation of the input gives
    the same bytes.
    """
    contributions = sorted(
        (a.category, a.severity) for a in covering if a is not None
    )
    if not contributions:
        return None
    if len(contributions) == 1:
        category, severity = contributions[0]
        r, g, bl = category_rgb(category)
        return BlendedColor(
            r=r, g=g, b=bl, alpha=combined_alpha([severity_weight(severity)], cap),
        )

    w_sum = L_sum = a_sum = b_sum = 0.0
    weights = []
    for category, severity in contributions:
        L, a, b = oklch_to_oklab(*category_oklch(category))
        w = severity_weight(severity)
        w_sum += w
        L_sum += L * w
        a_sum += a * w
        b_sum += b * w
        weights.append(w)

    r, g, bl = oklab_to_rgb(L_sum / w_sum, a_sum / w_sum, b_sum / w_sum)
    return BlendedColor(r=r, g=g, b=bl, alpha=combined_alpha(weights, cap))
