# forge/filter_stack.py
"""
Fingerprint -> ordered effect stack.

The renderer overlays these effects on an already generated raster, so the
base image generator never runs again. Compositing order is fixed by effect
kind (lighting, glow, texture, chrome, bloom) and never by fingerprint content.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple

from forge.style_variants import (
    Bloom,
    Chrome,
    Glow,
    Gradient,
    Lighting,
    Palette,
    StyleFingerprint,
    Texture,
)

MAX_GLOW_INTENSITY = 1.0
MIN_SHADOW_BLUR = 14


class EffectKind(str, Enum):
    LIGHTING = "lighting"
    GLOW = "glow"
    TEXTURE = "texture"
    CHROME = "chrome"
    BLOOM = "bloom"


CANONICAL_ORDER: Tuple[EffectKind, ...] = (
    EffectKind.LIGHTING,
    EffectKind.GLOW,
    EffectKind.TEXTURE,
    EffectKind.CHROME,
    EffectKind.BLOOM,
)


@dataclass(frozen=True)
class EffectDescriptor:
    kind: EffectKind
    params: Tuple[Tuple[str, Any], ...]

    @property
    def filter_id(self) -> str:
        return f"demo-{self.kind.value}"

    def param(self, key: str) -> Any:
        return dict(self.params)[key]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "filterId": self.filter_id,
            "params": dict(self.params),
        }


@dataclass(frozen=True)
class FilterStack:
    effects: Tuple[EffectDescriptor, ...]

    def __iter__(self) -> Iterator[EffectDescriptor]:
        return iter(self.effects)

    def __len__(self) -> int:
        return len(self.effects)

    def kinds(self) -> List[EffectKind]:
        return [effect.kind for effect in self.effects]

    def get(self, kind: EffectKind):
        for effect in self.effects:
            if effect.kind is kind:
                return effect
        return None

    def to_list(self) -> List[Dict[str, Any]]:
        return [effect.to_dict() for effect in self.effects]


# -----------------------
# Lookup tables (total over every domain)
# -----------------------

PALETTE_GLOW_COLOR: Dict[Palette, str] = {
    Palette.NEON_PINK_BLUE: "#FF1493",
    Palette.MAGENTA_CYAN: "#00FFFF",
    Palette.SUNSET_PURPLE: "#DA70D6",
    Palette.ELECTRIC_BLUE: "#00BFFF",
    Palette.LASER_GREEN: "#00FF00",
    Palette.HOT_PINK_GOLD: "#FFD700",
    Palette.CYBER_ORANGE: "#FF6347",
    Palette.VAPOR_TEAL: "#40E0D0",
    Palette.MIDNIGHT_NEON: "#00FFFF",
    Palette.RETRO_RED: "#FF3131",
    Palette.ARCADE_YELLOW: "#FFE600",
    Palette.ULTRAVIOLET: "#9D00FF",
}

PALETTE_GLOW_INTENSITY: Dict[Palette, float] = {
    Palette.NEON_PINK_BLUE: 1.0,
    Palette.MAGENTA_CYAN: 1.0,
    Palette.SUNSET_PURPLE: 0.95,
    Palette.ELECTRIC_BLUE: 0.98,
    Palette.LASER_GREEN: 0.98,
    Palette.HOT_PINK_GOLD: 0.95,
    Palette.CYBER_ORANGE: 0.98,
    Palette.VAPOR_TEAL: 0.9,
    Palette.MIDNIGHT_NEON: 1.0,
    Palette.RETRO_RED: 0.9,
    Palette.ARCADE_YELLOW: 0.9,
    Palette.ULTRAVIOLET: 0.95,
}

# (gradient shape, angle in degrees)
GRADIENT_SHAPE: Dict[Gradient, Tuple[str, int]] = {
    Gradient.HORIZONTAL: ("linear", 0),
    Gradient.VERTICAL: ("linear", 90),
    Gradient.DIAGONAL: ("linear", 45),
    Gradient.RADIAL: ("radial", 0),
    Gradient.METALLIC_BAND: ("banded", 0),
    Gradient.SUNSET_FADE: ("linear", 180),
}

# shadow blur, glow intensity, blur stdDeviation, extrusion layers
GLOW_PARAMS: Dict[Glow, Tuple[int, float, float, int]] = {
    Glow.SOFT_NEON: (16, 0.65, 2.0, 5),
    Glow.HARD_NEON: (32, 1.0, 8.0, 15),
    Glow.PULSE_GLOW: (24, 0.88, 4.0, 10),
    Glow.AURA_GLOW: (38, 0.8, 6.0, 13),
}

# direction label, azimuth, elevation
LIGHTING_PARAMS: Dict[Lighting, Tuple[str, int, int]] = {
    Lighting.TOP_LEFT: ("top-left", 225, 45),
    Lighting.TOP_RIGHT: ("top-right", 315, 45),
    Lighting.BOTTOM_LEFT: ("bottom-left", 135, 30),
    Lighting.FRONT: ("top", 270, 60),
}

# base frequency, octaves, displacement scale
TEXTURE_PARAMS: Dict[Texture, Tuple[str, int, float]] = {
    Texture.GRAIN: ("0.8", 4, 1.5),
    Texture.HALFTONE: ("0.5", 3, 3.0),
    Texture.SCANLINES: ("0.0 0.8", 3, 2.0),
}

# reflection strength, inner shadow, pixel reflections, floating shadow
CHROME_PARAMS: Dict[Chrome, Tuple[float, bool, bool, bool]] = {
    Chrome.MIRROR_CHROME: (0.9, True, True, True),
    Chrome.BRUSHED_METAL: (0.5, False, False, False),
    Chrome.RAINBOW_CHROME: (0.85, True, True, True),
    Chrome.DARK_CHROME: (0.4, False, False, True),
}

BLOOM_STRENGTH: Dict[Bloom, float] = {
    Bloom.LOW: 1.5,
    Bloom.MEDIUM: 3.0,
    Bloom.HEAVY: 5.0,
}


def _r(value: float) -> float:
    return round(value, 4)


# -----------------------
# Per-effect builders
# -----------------------

def _lighting(fp: StyleFingerprint) -> EffectDescriptor:
    direction, azimuth, elevation = LIGHTING_PARAMS[fp.lighting]
    return EffectDescriptor(
        kind=EffectKind.LIGHTING,
        params=(
            ("direction", direction),
            ("azimuth", azimuth),
            ("elevation", elevation),
            ("surfaceScale", 5),
            ("specularExponent", 25),
        ),
    )


def _glow(fp: StyleFingerprint) -> EffectDescriptor:
    shadow_blur, glow_intensity, std_dev, layers = GLOW_PARAMS[fp.glow]
    shape, angle = GRADIENT_SHAPE[fp.gradient]
    intensity = min(glow_intensity * PALETTE_GLOW_INTENSITY[fp.palette], MAX_GLOW_INTENSITY)
    return EffectDescriptor(
        kind=EffectKind.GLOW,
        params=(
            ("color", PALETTE_GLOW_COLOR[fp.palette]),
            ("intensity", _r(intensity)),
            ("stdDeviation", _r(std_dev * 1.5)),
            ("shadowBlur", max(shadow_blur, MIN_SHADOW_BLUR)),
            ("extrusionLayers", layers),
            ("saturate", 2.2),
            ("gradient", shape),
            ("gradientAngle", angle),
        ),
    )


def _texture(fp: StyleFingerprint) -> EffectDescriptor:
    base_frequency, octaves, scale = TEXTURE_PARAMS[fp.texture]
    return EffectDescriptor(
        kind=EffectKind.TEXTURE,
        params=(
            ("pattern", fp.texture.value),
            ("baseFrequency", base_frequency),
            ("numOctaves", octaves),
            ("scale", scale),
        ),
    )


def _chrome(fp: StyleFingerprint) -> EffectDescriptor:
    strength, inner_shadow, pixel_reflections, floating_shadow = CHROME_PARAMS[fp.chrome]
    return EffectDescriptor(
        kind=EffectKind.CHROME,
        params=(
            ("finish", fp.chrome.value),
            ("specularConstant", _r(strength * 1.8)),
            ("blend", _r(0.35 + strength * 0.5)),
            ("iridescent", fp.chrome is Chrome.RAINBOW_CHROME),
            ("innerShadow", inner_shadow),
            ("pixelReflections", pixel_reflections),
            ("floatingShadow", floating_shadow),
        ),
    )


def _bloom(fp: StyleFingerprint) -> EffectDescriptor:
    strength = BLOOM_STRENGTH[fp.bloom]
    return EffectDescriptor(
        kind=EffectKind.BLOOM,
        params=(
            ("tint", PALETTE_GLOW_COLOR[fp.palette]),
            ("stdDeviation", _r(strength * 2.5)),
            ("alphaSlope", _r(0.35 + strength * 0.15)),
        ),
    )


def _is_active(kind: EffectKind, fp: StyleFingerprint) -> bool:
    if kind is EffectKind.TEXTURE:
        return fp.texture is not Texture.NONE
    return True


_BUILDERS = {
    EffectKind.LIGHTING: _lighting,
    EffectKind.GLOW: _glow,
    EffectKind.TEXTURE: _texture,
    EffectKind.CHROME: _chrome,
    EffectKind.BLOOM: _bloom,
}


def compose(fp: StyleFingerprint) -> FilterStack:
    """Pure and total: same fingerprint, same stack, in any process."""
    return FilterStack(
        effects=tuple(
            _BUILDERS[kind](fp) for kind in CANONICAL_ORDER if _is_active(kind, fp)
        )
    )
