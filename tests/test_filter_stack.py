"""
Tests for the fingerprint -> filter stack pipeline.
"""

import itertools

import pytest

from forge.filter_stack import (
    CANONICAL_ORDER,
    MAX_GLOW_INTENSITY,
    MIN_SHADOW_BLUR,
    EffectKind,
    compose,
)
from forge.style_variants import (
    DIMENSIONS,
    Bloom,
    Chrome,
    Glow,
    Gradient,
    Lighting,
    Palette,
    StyleFingerprint,
    Texture,
)


def _fp(**overrides):
    values = dict(
        palette=Palette.MAGENTA_CYAN,
        gradient=Gradient.DIAGONAL,
        glow=Glow.PULSE_GLOW,
        chrome=Chrome.MIRROR_CHROME,
        bloom=Bloom.HEAVY,
        texture=Texture.SCANLINES,
        lighting=Lighting.TOP_RIGHT,
    )
    values.update(overrides)
    return StyleFingerprint(**values)


def _all_fingerprints():
    domains = [list(domain) for domain in DIMENSIONS.values()]
    for combo in itertools.product(*domains):
        yield StyleFingerprint(**dict(zip(DIMENSIONS, combo)))


class TestCompose:
    """Shape and determinism of the stack."""

    def test_full_stack_in_canonical_order(self):
        stack = compose(_fp())
        assert stack.kinds() == list(CANONICAL_ORDER)
        assert len(stack) == 5

    def test_texture_none_is_omitted(self):
        stack = compose(_fp(texture=Texture.NONE))
        assert EffectKind.TEXTURE not in stack.kinds()
        assert stack.kinds() == [
            EffectKind.LIGHTING,
            EffectKind.GLOW,
            EffectKind.CHROME,
            EffectKind.BLOOM,
        ]

    def test_same_fingerprint_same_stack(self):
        fp = _fp()
        assert compose(fp) == compose(StyleFingerprint.from_dict(fp.to_dict()))
        assert compose(fp).to_list() == compose(fp).to_list()

    def test_total_over_domain(self):
        for fp in itertools.islice(_all_fingerprints(), 0, None, 7):
            stack = compose(fp)
            order = [CANONICAL_ORDER.index(kind) for kind in stack.kinds()]
            assert order == sorted(order)

    def test_to_list_shape(self):
        entry = compose(_fp()).to_list()[0]
        assert entry["kind"] == "lighting"
        assert entry["filterId"] == "demo-lighting"
        assert entry["params"]["direction"] == "top-right"


class TestLocality:
    """Changing one dimension only touches the effects that read it."""

    @pytest.mark.parametrize("lighting", list(Lighting))
    def test_lighting_change_only_touches_lighting_entry(self, lighting):
        base = compose(_fp())
        changed = compose(_fp(lighting=lighting))
        assert changed.kinds() == base.kinds()
        for before, after in zip(base, changed):
            if before.kind is EffectKind.LIGHTING:
                continue
            assert before == after

    def test_chrome_change_only_touches_chrome_entry(self):
        base = compose(_fp())
        changed = compose(_fp(chrome=Chrome.DARK_CHROME))
        diff = [b.kind for b, c in zip(base, changed) if b != c]
        assert diff == [EffectKind.CHROME]

    def test_palette_tints_glow_and_bloom(self):
        stack = compose(_fp(palette=Palette.LASER_GREEN))
        assert stack.get(EffectKind.GLOW).param("color") == "#00FF00"
        assert stack.get(EffectKind.BLOOM).param("tint") == "#00FF00"


class TestClamps:
    """Glow parameters stay in range for every palette and glow."""

    @pytest.mark.parametrize("palette", list(Palette))
    @pytest.mark.parametrize("glow", list(Glow))
    def test_glow_bounds(self, palette, glow):
        effect = compose(_fp(palette=palette, glow=glow)).get(EffectKind.GLOW)
        assert 0 < effect.param("intensity") <= MAX_GLOW_INTENSITY
        assert effect.param("shadowBlur") >= MIN_SHADOW_BLUR

    def test_rainbow_chrome_is_iridescent(self):
        chrome = compose(_fp(chrome=Chrome.RAINBOW_CHROME)).get(EffectKind.CHROME)
        assert chrome.param("iridescent") is True

    def test_heavier_bloom_blurs_more(self):
        low = compose(_fp(bloom=Bloom.LOW)).get(EffectKind.BLOOM).param("stdDeviation")
        heavy = compose(_fp(bloom=Bloom.HEAVY)).get(EffectKind.BLOOM).param("stdDeviation")
        assert heavy > low
