"""Tests for the partitioning search (psp.search).

Tests verify:
    1. Input validation fails before the model is ever evaluated.
    2. The half-plane model is split into its two halves with the right
       centroids.
    3. Every chain point is in bounds and maps to its region's pattern,
       and no two regions share a pattern.
    4. Regions found by walking (not seeding) are recorded as discoveries.
    5. max_patterns aborts the search at the first overflowing pattern.
    6. Hit-or-miss refinement produces sensible volumes.
    7. Seeded runs are reproducible.
"""

import math

import numpy as np
import pytest

from psp.errors import InvalidInputError, TooManyPatternsError
from psp.options import PSPOptions
from psp.search import psp_search


class TestInputValidation:
    """Bad inputs raise InvalidInputError with zero model calls."""

    def test_starting_point_out_of_bounds(self, half_plane, unit_square):
        with pytest.raises(InvalidInputError):
            psp_search(half_plane, [[0.25, 0.5], [1.5, 0.5]], unit_square, max_patterns=2)
        assert half_plane.n_calls == 0

    def test_dimension_mismatch(self, half_plane, unit_square):
        with pytest.raises(InvalidInputError, match="Dimension mismatch"):
            psp_search(half_plane, [[0.25, 0.5, 0.5]], unit_square, max_patterns=2)
        assert half_plane.n_calls == 0

    def test_negative_range(self, half_plane):
        bounds = np.array([[0.0, 1.0], [1.0, 0.0]])
        with pytest.raises(InvalidInputError, match="Invalid bounds"):
            psp_search(half_plane, [[0.25, 0.5]], bounds, max_patterns=2)
        assert half_plane.n_calls == 0

    def test_no_starting_points(self, half_plane, unit_square):
        with pytest.raises(InvalidInputError, match="No starting points"):
            psp_search(half_plane, np.empty((0, 2)), unit_square, max_patterns=2)
        assert half_plane.n_calls == 0

    def test_bad_bounds_shape(self, half_plane):
        with pytest.raises(InvalidInputError):
            psp_search(half_plane, [[0.25, 0.5]], [0.0, 1.0], max_patterns=2)

    def test_max_patterns_must_be_positive(self, half_plane, unit_square):
        with pytest.raises(InvalidInputError):
            psp_search(half_plane, [[0.25, 0.5]], unit_square, max_patterns=0)
        assert half_plane.n_calls == 0

    def test_invalid_input_is_value_error(self, half_plane, unit_square):
        with pytest.raises(ValueError):
            psp_search(half_plane, [[2.0, 2.0]], unit_square, max_patterns=2)


class TestHalfPlane:
    """Unit square split at x0 = 0.5, one seed in each half, default options."""

    @pytest.fixture
    def result(self, half_plane, unit_square):
        return psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                          max_patterns=2, seed=7)

    def test_two_regions(self, result):
        assert result.patterns == ["A", "B"]

    def test_centroids(self, result):
        np.testing.assert_allclose(result.region_for("A").mean, [0.25, 0.5], atol=0.06)
        np.testing.assert_allclose(result.region_for("B").mean, [0.75, 0.5], atol=0.06)

    def test_covariance_shape(self, result):
        """Uniform on [0, 0.5] x [0, 1]: variances 1/48 and 1/12."""
        cov = result.region_for("A").cov
        assert cov[0, 0] == pytest.approx(1 / 48, rel=0.35)
        assert cov[1, 1] == pytest.approx(1 / 12, rel=0.35)
        assert abs(cov[0, 1]) < 0.02

    def test_volumes_near_half(self, result):
        """A uniform rectangle is close to, but not exactly, an ellipse."""
        for region in result.regions:
            assert 0.3 < region.volume < 0.8

    def test_chain_points_belong_to_region(self, result, half_plane):
        for region in result.regions:
            assert np.all(region.chain >= 0.0) and np.all(region.chain <= 1.0)
            for point in region.chain:
                assert half_plane(point) == region.pattern

    def test_enough_level_two_samples(self, result):
        fine_cycle = result.options["fine_cycle"]
        assert fine_cycle == math.ceil(200 * 1.2 ** 2)
        for region in result.regions:
            assert region.n_samples > result.options["max_psp"] * fine_cycle

    def test_bookkeeping(self, result):
        assert result.n_trials > 0
        # Two seeds, plus at most one call per trial
        assert 2 < result.n_model_calls <= result.n_trials + 2
        assert result.seed == 7
        assert [d.source for d in result.discoveries] == ["seed", "seed"]
        assert result.volume_fractions().shape == (2,)


class TestDiscovery:
    """Patterns reachable only by walking."""

    def test_bands_found_from_single_seed(self, bands, unit_square, fast_options):
        result = psp_search(bands, [[0.1, 0.5]], unit_square, max_patterns=3,
                            options=fast_options, seed=3)
        assert sorted(result.patterns) == [0, 1, 2]
        assert result.patterns[0] == 0
        assert len(set(result.patterns)) == len(result.patterns)

        sources = [d.source for d in result.discoveries]
        assert sources == ["seed", "search", "search"]
        for discovery in result.discoveries:
            region = result.regions[discovery.region]
            assert region.pattern == discovery.pattern
            np.testing.assert_array_equal(region.chain[0], discovery.point)
        trials = [d.trial for d in result.discoveries]
        assert trials == sorted(trials)

        for region in result.regions:
            for point in region.chain:
                assert bands(point) == region.pattern

    def test_duplicate_seeds_share_a_region(self, half_plane, unit_square, fast_options):
        result = psp_search(half_plane, [[0.1, 0.1], [0.2, 0.2], [0.9, 0.9]],
                            unit_square, max_patterns=2, options=fast_options, seed=0)
        assert result.patterns == ["A", "B"]
        np.testing.assert_array_equal(result.region_for("A").chain[0], [0.1, 0.1])

    def test_single_point_shape_accepted(self, half_plane, unit_square, fast_options):
        result = psp_search(half_plane, [0.25, 0.5], unit_square, max_patterns=2,
                            options=fast_options, seed=1)
        assert set(result.patterns) == {"A", "B"}

    def test_tuple_patterns(self, unit_square, fast_options):
        def quadrants(x):
            return (bool(x[0] > 0.5), bool(x[1] > 0.5))

        seeds = [[0.25, 0.25], [0.75, 0.25], [0.25, 0.75], [0.75, 0.75]]
        result = psp_search(quadrants, seeds, unit_square, max_patterns=4,
                            options=fast_options, seed=2, max_psp=6)
        assert len(result.regions) == 4
        for region in result.regions:
            centre = np.array([0.25 + 0.5 * region.pattern[0],
                               0.25 + 0.5 * region.pattern[1]])
            np.testing.assert_allclose(region.mean, centre, atol=0.1)


class TestTooManyPatterns:
    """max_patterns overflow."""

    def test_raised_at_second_pattern(self, half_plane, unit_square, fast_options):
        with pytest.raises(TooManyPatternsError) as excinfo:
            psp_search(half_plane, [[0.25, 0.5]], unit_square, max_patterns=1,
                       options=fast_options, seed=5)
        err = excinfo.value
        assert err.pattern == "B"
        assert err.max_patterns == 1
        assert err.point[0] >= 0.5
        assert err.n_trials > 0

    def test_raised_while_seeding(self, half_plane, unit_square):
        with pytest.raises(TooManyPatternsError) as excinfo:
            psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                       max_patterns=1)
        assert excinfo.value.n_trials == 0
        assert half_plane.n_calls == 2

    def test_limit_equal_to_pattern_count_is_fine(self, bands, unit_square, fast_options):
        result = psp_search(bands, [[0.1, 0.5]], unit_square, max_patterns=3,
                            options=fast_options, seed=4)
        assert len(result.regions) == 3


class TestVolumeRefinement:
    """accurate_volume_estimate=True on the disk model."""

    @pytest.fixture
    def result(self, disk, unit_square):
        return psp_search(disk, [[0.5, 0.5], [0.05, 0.05]], unit_square,
                          max_patterns=2, seed=11, accurate_volume_estimate=True)

    def test_hits_recorded(self, result):
        assert result.accurate_volume
        for region in result.regions:
            assert region.volume_hits is not None
            assert 0 < region.volume_hits <= result.options["volume_sample_size"]

    def test_disk_area(self, result, disk):
        assert result.region_for("in").volume == pytest.approx(disk.area, rel=0.25)

    def test_complement_area(self, result, disk):
        assert 0.4 < result.region_for("out").volume < 0.95

    def test_model_calls_include_refinement(self, result, disk, unit_square):
        plain = psp_search(disk, [[0.5, 0.5], [0.05, 0.05]], unit_square,
                           max_patterns=2, seed=11)
        # Refinement runs after sampling, so the search itself is identical
        assert plain.n_trials == result.n_trials
        assert result.n_model_calls > plain.n_model_calls

    def test_closed_form_only_by_default(self, disk, unit_square, fast_options):
        result = psp_search(disk, [[0.5, 0.5]], unit_square, max_patterns=2,
                            options=fast_options, seed=11)
        assert not result.accurate_volume
        assert all(r.volume_hits is None for r in result.regions)


class TestReproducibility:
    """Seeds and generators."""

    def test_same_seed_same_result(self, half_plane, unit_square, fast_options):
        runs = [
            psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                       max_patterns=2, options=fast_options, seed=123)
            for _ in range(2)
        ]
        for a, b in zip(runs[0].regions, runs[1].regions):
            np.testing.assert_array_equal(a.chain, b.chain)
            np.testing.assert_array_equal(a.cov, b.cov)
        assert runs[0].n_trials == runs[1].n_trials

    def test_explicit_generator(self, half_plane, unit_square, fast_options):
        a = psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                       max_patterns=2, options=fast_options,
                       rng=np.random.default_rng(8))
        b = psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                       max_patterns=2, options=fast_options,
                       rng=np.random.default_rng(8))
        assert a.seed is None
        np.testing.assert_array_equal(a.regions[0].chain, b.regions[0].chain)

    def test_unseeded_run_reports_entropy(self, half_plane, unit_square, fast_options):
        result = psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                            max_patterns=2, options=fast_options)
        assert isinstance(result.seed, int)
        replay = psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                            max_patterns=2, options=fast_options, seed=result.seed)
        np.testing.assert_array_equal(result.regions[0].chain, replay.regions[0].chain)


class TestOptions:
    """PSPOptions defaults and overrides."""

    def test_defaults_scale_with_dimension(self):
        opts = PSPOptions().resolve(3)
        assert opts.max_psp == 6
        assert opts.base_step == 0.1
        assert opts.coarse_cycle == math.ceil(100 * 1.2 ** 3)
        assert opts.fine_cycle == math.ceil(200 * 1.2 ** 3)
        assert opts.volume_sample_size == math.ceil(500 * 1.2 ** 3)
        assert opts.accurate_volume_estimate is False

    def test_non_positive_falls_back(self):
        opts = PSPOptions(max_psp=0, base_step=-1.0, fine_cycle=50).resolve(2)
        assert opts.max_psp == 6
        assert opts.base_step == 0.1
        assert opts.fine_cycle == 50

    def test_keyword_overrides(self, half_plane, unit_square, fast_options):
        result = psp_search(half_plane, [[0.25, 0.5], [0.75, 0.5]], unit_square,
                            max_patterns=2, options=fast_options, seed=0,
                            max_psp=1)
        assert result.options["max_psp"] == 1
        assert result.options["fine_cycle"] == 100
