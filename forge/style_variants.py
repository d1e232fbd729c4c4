# forge/style_variants.py
"""
Style fingerprint domains plus the generate / validate / repair trio.

A fingerprint is seven independent categorical picks. Which combinations are
acceptable is product policy: the engine only ever asks a StylePolicy, and
NeonStylePolicy is the one the forge ships with.
"""

import logging
import random
from dataclasses import dataclass, fields, replace
from enum import Enum
from math import prod
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

logger = logging.getLogger("forge_backend")


class Palette(str, Enum):
    NEON_PINK_BLUE = "neonPinkBlue"
    MAGENTA_CYAN = "magentaCyan"
    SUNSET_PURPLE = "sunsetPurple"
    ELECTRIC_BLUE = "electricBlue"
    LASER_GREEN = "laserGreen"
    HOT_PINK_GOLD = "hotPinkGold"
    CYBER_ORANGE = "cyberOrange"
    VAPOR_TEAL = "vaporTeal"
    MIDNIGHT_NEON = "midnightNeon"
    RETRO_RED = "retroRed"
    ARCADE_YELLOW = "arcadeYellow"
    ULTRAVIOLET = "ultraviolet"


class Gradient(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    DIAGONAL = "diagonal"
    RADIAL = "radial"
    METALLIC_BAND = "metallicBand"
    SUNSET_FADE = "sunsetFade"


class Glow(str, Enum):
    SOFT_NEON = "softNeon"
    HARD_NEON = "hardNeon"
    PULSE_GLOW = "pulseGlow"
    AURA_GLOW = "auraGlow"


class Chrome(str, Enum):
    MIRROR_CHROME = "mirrorChrome"
    BRUSHED_METAL = "brushedMetal"
    RAINBOW_CHROME = "rainbowChrome"
    DARK_CHROME = "darkChrome"


class Bloom(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HEAVY = "heavy"


class Texture(str, Enum):
    NONE = "none"
    GRAIN = "grain"
    HALFTONE = "halftone"
    SCANLINES = "scanlines"


class Lighting(str, Enum):
    TOP_LEFT = "topLeft"
    TOP_RIGHT = "topRight"
    BOTTOM_LEFT = "bottomLeft"
    FRONT = "front"


# dimension name -> domain, in storage column order
DIMENSIONS: Dict[str, Type[Enum]] = {
    "palette": Palette,
    "gradient": Gradient,
    "glow": Glow,
    "chrome": Chrome,
    "bloom": Bloom,
    "texture": Texture,
    "lighting": Lighting,
}


@dataclass(frozen=True)
class StyleFingerprint:
    palette: Palette
    gradient: Gradient
    glow: Glow
    chrome: Chrome
    bloom: Bloom
    texture: Texture
    lighting: Lighting

    def to_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name).value for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> "StyleFingerprint":
        """
        Build a fingerprint from plain strings (a DB row or a JSON body).
        Raises ValueError for a missing dimension or a value outside its domain.
        """
        values = {}
        for name, domain in DIMENSIONS.items():
            if name not in data:
                raise ValueError(f"Missing style dimension: {name}")
            values[name] = domain(data[name])
        return cls(**values)


def total_domain_size() -> int:
    return prod(len(domain) for domain in DIMENSIONS.values())


# -----------------------
# Policies
# -----------------------

@dataclass(frozen=True)
class CombinationRule:
    """
    A cross-field restriction. `violated_by` flags the bad combination and
    `fix` names the fields to overwrite to get out of it.
    """
    name: str
    violated_by: Callable[[StyleFingerprint], bool]
    fix: Mapping[str, Enum]

    def apply(self, fp: StyleFingerprint) -> StyleFingerprint:
        return replace(fp, **dict(self.fix))


class StylePolicy:
    """
    Base policy: every value of every domain is allowed, no combination rules,
    uniform draws.
    """
    name = "open"
    rules: Tuple[CombinationRule, ...] = ()

    def allowed(self, dimension: str) -> Sequence[Enum]:
        return tuple(DIMENSIONS[dimension])

    def weights(self, dimension: str) -> Optional[List[float]]:
        return None

    @property
    def default(self) -> StyleFingerprint:
        return StyleFingerprint(**{name: self.allowed(name)[0] for name in DIMENSIONS})

    def is_valid(self, fp: StyleFingerprint) -> bool:
        for name in DIMENSIONS:
            if getattr(fp, name) not in self.allowed(name):
                return False
        return not any(rule.violated_by(fp) for rule in self.rules)


class NeonStylePolicy(StylePolicy):
    """
    Demo forge look: neon gradients, high contrast magenta/cyan/purple
    palettes, no muted colours, medium-to-heavy bloom.
    """
    name = "neon"

    ALLOWED: Dict[str, Tuple[Enum, ...]] = {
        "palette": (
            Palette.NEON_PINK_BLUE,
            Palette.MAGENTA_CYAN,
            Palette.HOT_PINK_GOLD,
            Palette.SUNSET_PURPLE,
            Palette.ULTRAVIOLET,
            Palette.ELECTRIC_BLUE,
            Palette.CYBER_ORANGE,
            Palette.LASER_GREEN,
            Palette.MIDNIGHT_NEON,
        ),
        "gradient": (
            Gradient.HORIZONTAL,
            Gradient.VERTICAL,
            Gradient.DIAGONAL,
            Gradient.RADIAL,
            Gradient.SUNSET_FADE,
        ),
        "glow": tuple(Glow),
        "chrome": tuple(Chrome),
        "bloom": (Bloom.MEDIUM, Bloom.HEAVY),
        "texture": tuple(Texture),
        "lighting": tuple(Lighting),
    }

    rules = (
        # a soft glow disappears into dark chrome unless the halo carries it
        CombinationRule(
            name="soft_glow_dark_chrome_needs_heavy_bloom",
            violated_by=lambda fp: (
                fp.glow is Glow.SOFT_NEON
                and fp.chrome is Chrome.DARK_CHROME
                and fp.bloom is not Bloom.HEAVY
            ),
            fix={"bloom": Bloom.HEAVY},
        ),
        CombinationRule(
            name="no_grain_on_brushed_metal",
            violated_by=lambda fp: fp.chrome is Chrome.BRUSHED_METAL and fp.texture is Texture.GRAIN,
            fix={"texture": Texture.NONE},
        ),
    )

    def allowed(self, dimension: str) -> Sequence[Enum]:
        return self.ALLOWED[dimension]

    def weights(self, dimension: str) -> Optional[List[float]]:
        allowed = set(self.ALLOWED[dimension])
        return [1.0 if member in allowed else 0.0 for member in DIMENSIONS[dimension]]


DEFAULT_POLICY: StylePolicy = NeonStylePolicy()


def total_combinations(policy: StylePolicy = DEFAULT_POLICY) -> int:
    """Size of the per-field allowed space, before combination rules."""
    return prod(len(policy.allowed(name)) for name in DIMENSIONS)


# -----------------------
# Generate / validate / repair
# -----------------------

def generate(policy: StylePolicy = DEFAULT_POLICY, rng=None) -> StyleFingerprint:
    """
    Independent draw per dimension, weighted by the policy when it supplies
    weights. The result is NOT guaranteed to be valid.
    """
    rng = rng or random
    picks = {}
    for name, domain in DIMENSIONS.items():
        members = list(domain)
        picks[name] = rng.choices(members, weights=policy.weights(name), k=1)[0]
    return StyleFingerprint(**picks)


def validate(fp: StyleFingerprint, policy: StylePolicy = DEFAULT_POLICY) -> bool:
    return policy.is_valid(fp)


def _next_allowed(value: Enum, allowed: Sequence[Enum]) -> Enum:
    members = list(type(value))
    start = members.index(value)
    for step in range(1, len(members) + 1):
        candidate = members[(start + step) % len(members)]
        if candidate in allowed:
            return candidate
    raise ValueError(f"Policy allows no value for {type(value).__name__}")


def _snap_to_allowed(fp: StyleFingerprint, policy: StylePolicy) -> StyleFingerprint:
    changes = {}
    for name in DIMENSIONS:
        value = getattr(fp, name)
        allowed = policy.allowed(name)
        if value not in allowed:
            changes[name] = _next_allowed(value, allowed)
    return replace(fp, **changes) if changes else fp


def repair(fp: StyleFingerprint, policy: StylePolicy = DEFAULT_POLICY) -> StyleFingerprint:
    """
    Deterministically move `fp` to a valid neighbour.

    Disallowed fields are replaced by the next allowed value in domain order,
    then the first broken combination rule applies its fix. Bounded by the
    number of rules; a policy whose fixes fight each other ends on its default.
    Valid input comes back unchanged.
    """
    candidate = fp
    for _ in range(len(policy.rules) + 1):
        candidate = _snap_to_allowed(candidate, policy)
        broken = [rule for rule in policy.rules if rule.violated_by(candidate)]
        if not broken:
            return candidate
        logger.debug("repair: %s violates %s", candidate.to_dict(), broken[0].name)
        candidate = broken[0].apply(candidate)

    candidate = _snap_to_allowed(candidate, policy)
    if policy.is_valid(candidate):
        return candidate
    logger.warning("repair: policy '%s' did not converge, using its default", policy.name)
    return policy.default


def make_valid_fingerprint(policy: StylePolicy = DEFAULT_POLICY, rng=None) -> StyleFingerprint:
    fp = generate(policy, rng)
    if validate(fp, policy):
        return fp
    return repair(fp, policy)
