import numpy as np
import pytest
from scipy.stats import norm

from DPmix.density import estimate_density, kernel_density, normalized_weights
from DPmix.params import DPClusteringSpec
from DPmix.sampler import run_gibbs_sampler
from DPmix.utils import ComputationError, IterationHistory, SamplerState


def make_history(sticks, vafs, n_mutations=2):
    """Build a frozen history from explicit stick fractions and cluster VAFs."""
    sticks = np.asarray(sticks, dtype=float)
    vafs = np.asarray(vafs, dtype=float)
    history = IterationHistory(len(sticks), sticks.shape[1], n_mutations)
    for m, (v, theta) in enumerate(zip(sticks, vafs), start=1):
        history.append(
            SamplerState(
                iteration=m,
                stick_fractions=v,
                cluster_vaf=theta,
                concentration=1.0,
                assignment=np.zeros(n_mutations, dtype=np.int64),
            )
        )
    return history.freeze()


@pytest.fixture(scope="module")
def sampled_history():
    rng = np.random.default_rng(3)
    depth = np.full(40, 120)
    alt = np.concatenate([rng.binomial(120, 0.2, 20), rng.binomial(120, 0.45, 20)])
    spec = DPClusteringSpec(iterations=120, max_clusters=8, verbose=False)
    return run_gibbs_sampler(alt, depth, spec)


class TestKernelDensity:
    """Tests for kernel_density function."""

    def test_single_center(self):
        grid = np.linspace(0, 1, 11)
        dens = kernel_density(np.array([0.3]), np.array([1.0]), grid, 0.05)
        np.testing.assert_allclose(dens, norm.pdf(grid, 0.3, 0.05))

    def test_weighted_mixture(self):
        grid = np.linspace(0, 1, 50)
        dens = kernel_density(np.array([0.2, 0.6]), np.array([0.25, 0.75]), grid, 0.1)
        expected = 0.25 * norm.pdf(grid, 0.2, 0.1) + 0.75 * norm.pdf(grid, 0.6, 0.1)
        np.testing.assert_allclose(dens, expected)

    def test_batched(self):
        """Several mixtures at once agree with one-at-a-time evaluation."""
        grid = np.linspace(0, 0.7, 30)
        centers = np.array([[0.1, 0.5], [0.3, 0.4]])
        weights = np.array([[0.5, 0.5], [0.9, 0.1]])

        dens = kernel_density(centers, weights, grid, 0.02)

        assert dens.shape == (2, 30)
        for k in range(2):
            np.testing.assert_allclose(
                dens[k], kernel_density(centers[k], weights[k], grid, 0.02)
            )


class TestNormalizedWeights:
    """Tests for normalized_weights function."""

    def test_rows_sum_to_one(self):
        history = make_history(
            [[0.5, 0.5, 0.5], [0.2, 0.5, 0.5]], [[0.1, 0.2, 0.3]] * 2
        )
        wts = normalized_weights(history, burn_in=0)
        np.testing.assert_allclose(wts.sum(axis=1), 1.0)
        np.testing.assert_allclose(wts[0], np.array([0.5, 0.25, 0.125]) / 0.875)

    def test_zero_weights_raise(self):
        """An iteration whose weights are all zero is reported."""
        history = make_history(
            [[0.5, 1.0], [0.5, 1.0], [0.0, 0.0]], [[0.1, 0.2]] * 3
        )
        with pytest.raises(ComputationError) as excinfo:
            normalized_weights(history, burn_in=1)
        assert excinfo.value.iteration == 3


class TestEstimateDensity:
    """Tests for estimate_density function."""

    def test_grid_shape(self, sampled_history):
        """Grid has the configured resolution and spans [0, max_vaf]."""
        dens = estimate_density(sampled_history, burn_in=60, max_vaf=0.7)

        assert len(dens) == 512
        for arr in (dens.x, dens.mean, dens.lower, dens.upper):
            assert arr.shape == (512,)
        assert dens.x[0] == 0.0
        assert dens.x[-1] == 0.7

    def test_grid_independent_of_retained_count(self, sampled_history):
        for burn_in in (0, 60, 119):
            dens = estimate_density(sampled_history, burn_in=burn_in, grid_points=128)
            assert len(dens) == 128

    def test_band_ordering(self, sampled_history):
        """lower <= mean <= upper at every grid point."""
        dens = estimate_density(sampled_history, burn_in=30, bandwidth=0.02)
        assert np.all(dens.lower <= dens.mean)
        assert np.all(dens.mean <= dens.upper)
        assert np.all(dens.lower >= 0.0)

    def test_constant_history(self):
        """Identical iterations give a zero-width band around the KDE."""
        history = make_history([[0.5, 1.0]] * 5, [[0.2, 0.5]] * 5)
        dens = estimate_density(history, burn_in=1, bandwidth=0.05, max_vaf=1.0, grid_points=64)
        expected = 0.5 * norm.pdf(dens.x, 0.2, 0.05) + 0.5 * norm.pdf(dens.x, 0.5, 0.05)

        np.testing.assert_allclose(dens.mean, expected)
        np.testing.assert_allclose(dens.lower, expected)
        np.testing.assert_allclose(dens.upper, expected)

    def test_quantiles(self):
        """Band follows the empirical 2.5% and 97.5% quantiles."""
        vafs = [[0.1 + 0.01 * m, 0.6] for m in range(40)]
        history = make_history([[1.0, 1.0]] * 40, vafs)
        dens = estimate_density(history, burn_in=0, bandwidth=0.05, grid_points=32)

        curves = np.array([norm.pdf(dens.x, v[0], 0.05) for v in vafs])
        np.testing.assert_allclose(dens.mean, curves.mean(axis=0))
        lower = np.quantile(curves, 0.025, axis=0)
        upper = np.quantile(curves, 0.975, axis=0)
        np.testing.assert_allclose(dens.lower, np.minimum(lower, dens.mean))
        np.testing.assert_allclose(dens.upper, np.maximum(upper, dens.mean))

    def test_to_dataframe(self, sampled_history):
        df = estimate_density(sampled_history, burn_in=60, grid_points=16).to_dataframe()
        assert list(df.columns) == ["x", "mean", "lq", "uq"]
        assert len(df) == 16

    @pytest.mark.parametrize("kwargs", [{"bandwidth": 0.0}, {"max_vaf": 0.0}])
    def test_invalid_arguments(self, sampled_history, kwargs):
        with pytest.raises(ValueError):
            estimate_density(sampled_history, burn_in=10, **kwargs)

    def test_burn_in_out_of_range(self, sampled_history):
        with pytest.raises(ValueError):
            estimate_density(sampled_history, burn_in=120)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
