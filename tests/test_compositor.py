import numpy as np
import pytest

from image_cpr.compositor import apply_watermark, blend_region
from image_cpr.config import WatermarkConfig
from image_cpr.errors import UnsupportedFormat, WatermarkOutOfBounds


def test_blend_zero_opacity_leaves_destination(gradient_rgba, solid_rgba):
    dst = gradient_rgba(20, 20)
    src = solid_rgba(8, 8, (255, 0, 0, 255))
    for own_alpha in (False, True):
        out = blend_region(dst, src, 4, 4, 0.0, own_alpha)
        assert np.array_equal(out, dst)


def test_blend_full_opacity_replaces_rgb(gradient_rgba, solid_rgba):
    dst = gradient_rgba(20, 20)
    src = solid_rgba(8, 6, (12, 34, 56, 10))
    out = blend_region(dst, src, 3, 5, 1.0, False)

    assert np.all(out[5:11, 3:11, :3] == (12, 34, 56))
    # alpha of the base is untouched, as is everything outside the region
    assert np.array_equal(out[..., 3], dst[..., 3])
    mask = np.ones((20, 20), dtype=bool)
    mask[5:11, 3:11] = False
    assert np.array_equal(out[mask], dst[mask])


def test_blend_does_not_modify_input(gradient_rgba, solid_rgba):
    dst = gradient_rgba(10, 10)
    before = dst.copy()
    blend_region(dst, solid_rgba(4, 4, (0, 0, 0, 255)), 0, 0, 1.0, False)
    assert np.array_equal(dst, before)


def test_blend_with_watermark_alpha_scales_by_opacity(solid_rgba):
    dst = solid_rgba(4, 4, (0, 0, 200, 77))
    src = solid_rgba(4, 4, (255, 0, 0, 102))  # 102/255 = 0.4

    out = blend_region(dst, src, 0, 0, 0.5, True)  # effective alpha 0.2
    assert np.all(out[..., 0] == 51)
    assert np.all(out[..., 2] == 160)
    assert np.all(out[..., 3] == 77)


def test_blend_without_watermark_alpha_ignores_it(solid_rgba):
    dst = solid_rgba(2, 2, (0, 0, 0, 255))
    src = solid_rgba(2, 2, (200, 200, 200, 0))
    out = blend_region(dst, src, 0, 0, 0.5, False)
    assert np.all(out[..., :3] == 100)


def test_apply_watermark_decodes_and_places(encode_pil, gradient_rgba, solid_rgba):
    pytest.importorskip("pyvips")
    base = gradient_rgba(30, 20)
    mark = encode_pil(solid_rgba(5, 5, (9, 8, 7, 255)), "PNG")
    cfg = WatermarkConfig(content=mark, position=(10, 10, 5, 5), opacity=1.0)

    out = apply_watermark(base, cfg)
    assert out.shape == base.shape
    assert np.all(out[10:15, 10:15, :3] == (9, 8, 7))
    assert np.array_equal(out[:10], base[:10])


def test_apply_watermark_resizes_to_placement(encode_pil, solid_rgba):
    pytest.importorskip("pyvips")
    base = solid_rgba(50, 50, (0, 0, 0, 255))
    mark = encode_pil(solid_rgba(3, 7, (255, 255, 255, 255)), "PNG")
    out = apply_watermark(base, WatermarkConfig(content=mark, position=(0, 0, 20, 10), opacity=1.0))
    assert np.all(out[0:10, 0:20, :3] >= 254)
    assert np.all(out[10:, :, :3] == 0)
    assert np.all(out[:, 20:, :3] == 0)


def test_apply_watermark_out_of_bounds(encode_pil, solid_rgba):
    pytest.importorskip("pyvips")
    base = solid_rgba(20, 20, (0, 0, 0, 255))
    mark = encode_pil(solid_rgba(4, 4, (1, 1, 1, 255)), "PNG")
    with pytest.raises(WatermarkOutOfBounds) as exc:
        apply_watermark(base, WatermarkConfig(content=mark, position=(15, 0, 10, 10), opacity=1.0))
    assert exc.value.stage == "watermark"


def test_apply_watermark_rejects_unrecognized_content(solid_rgba):
    pytest.importorskip("pyvips")
    base = solid_rgba(20, 20, (0, 0, 0, 255))
    with pytest.raises(UnsupportedFormat):
        apply_watermark(base, WatermarkConfig(content=b"plain text", position=(0, 0, 5, 5), opacity=1.0))


def test_apply_watermark_transparent_mark_still_replaces_rgb(encode_pil, solid_rgba):
    pytest.importorskip("pyvips")
    base = solid_rgba(16, 16, (0, 0, 255, 255))
    mark = encode_pil(solid_rgba(2, 2, (255, 0, 0, 0)), "PNG")
    out = apply_watermark(base, WatermarkConfig(content=mark, position=(4, 4, 8, 8), opacity=1.0))
    assert np.all(out[4:12, 4:12, :3] == (255, 0, 0))
    assert np.all(out[..., 3] == 255)
    assert np.all(out[:4, :, :3] == (0, 0, 255))
