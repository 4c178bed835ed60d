import io
import json

import numpy as np
import pytest

from tvflip import regularize, TVConfig, DenoiseConfig, FlipConfig, TVTriangulation


def make_image(seed=0):
    rng = np.random.RandomState(seed)
    img = np.zeros((6, 6))
    img[2:5, 1:4] = 200.0
    return np.round(np.clip(img + 10.0 * rng.randn(6, 6), 0, 255))


def assert_invariants(tvt):
    summary = tvt.stats_summary()
    for op, stats in summary.items():
        attempts = stats['attempts']
        success = stats['success']
        fail = stats['fail']
        assert attempts == success + fail, f"{op}: attempts({attempts}) != success({success}) + fail({fail})"
        if attempts > 0:
            t_tot = stats['time_total']; t_min = stats['time_min']; t_max = stats['time_max']
            assert t_tot >= 0 and t_min >= 0 and t_max >= 0
            assert t_min <= t_max + 1e-12
            assert t_max <= t_tot + 1e-12


def test_config_round_trip_through_json():
    cfg = TVConfig(power=0.6, color=False, norm='grayscale', quantize_levels=8, alternations=2,
                   denoise=DenoiseConfig(fidelity=0.2, dt=0.2, tolerance=0.05, max_iterations=7),
                   flip=FlipConfig(max_passes=20, strategy=3, dark=5, bright=250, seed=11))
    data = json.loads(json.dumps(cfg.to_dict()))
    assert TVConfig.from_dict(data) == cfg
    assert TVConfig.from_dict({}) == TVConfig()


def test_config_surface_has_no_free_form_fields():
    assert set(TVConfig().to_dict()) == {
        'power', 'color', 'norm', 'quantize_levels', 'alternations', 'denoise', 'flip'}
    with pytest.raises(TypeError):
        TVConfig.from_dict({'extras': {'x': 1}})


def test_regularize_defaults_do_not_increase_energy():
    img = make_image()
    e0 = TVTriangulation.from_image(img).get_energy_tv()
    cfg = TVConfig()
    cfg.flip.seed = 3
    tvt = regularize(img, cfg)
    assert tvt.get_energy_tv() <= e0 + 1e-6
    assert tvt.output_image().shape == (6, 6)
    assert tvt.output_image().dtype == np.uint8
    assert_invariants(tvt)


def test_regularize_with_denoising_and_alternations():
    cfg = TVConfig(alternations=2, denoise=DenoiseConfig(fidelity=0.1))
    cfg.flip.seed = 0
    tvt = regularize(make_image(), cfg)
    assert tvt.stats_summary()['tv_pass']['attempts'] == 2
    assert tvt.stats_summary()['optimize']['attempts'] == 2
    assert_invariants(tvt)


def test_quantization_forces_single_alternation():
    cfg = TVConfig(quantize_levels=4, alternations=3, denoise=DenoiseConfig(fidelity=0.1))
    cfg.flip.seed = 0
    tvt = regularize(make_image(), cfg)
    summary = tvt.stats_summary()
    assert summary['tv_pass']['attempts'] == 1
    assert summary['optimize']['attempts'] == 1
    assert set(np.unique(tvt.u)) <= {0.0, 85.0, 170.0, 255.0}


def test_regularize_color_and_packed_input():
    rng = np.random.RandomState(2)
    rgb = rng.randint(0, 256, size=(4, 5, 3))
    packed = (rgb[..., 0] << 16) | (rgb[..., 1] << 8) | rgb[..., 2]
    cfg = TVConfig(flip=FlipConfig(strategy=0))
    a = regularize(rgb, cfg)
    b = regularize(packed, cfg, packed=True)
    assert a.color and b.color
    assert a.output_image().shape == (4, 5, 3)
    assert np.array_equal(a.output_image(), b.output_image())


def test_injected_random_source_is_used():
    calls = []

    def source():
        calls.append(1)
        return 0.9

    img = np.array([[10 * x + 20 * y for x in range(4)] for y in range(4)], dtype=float)
    regularize(img, TVConfig(flip=FlipConfig(strategy=4)), random_source=source)
    assert calls


def test_stats_reset_and_print():
    tvt = regularize(make_image(), TVConfig(flip=FlipConfig(seed=1)))
    buf = io.StringIO()
    tvt.print_stats(file=buf)
    text = buf.getvalue()
    assert 'one_pass' in text and 'Arc statuses' in text
    tvt.reset_stats()
    for stats in tvt.stats_summary().values():
        assert stats['attempts'] == 0 and stats['time_total'] == 0.0
    assert not tvt.status_counts
    tvt.reset_stats(drop_ops=True)
    assert tvt.stats_summary() == {}
