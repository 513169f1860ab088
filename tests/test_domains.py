import numpy as np
import pytest

from infinitecontrol.domains import (Interval, Distribution,
                                     UniformDistribution, NormalDistribution,
                                     TimeDiscretization, SampleDiscretization,
                                     Registry)
from infinitecontrol.errors import ConfigurationError


rng = np.random.default_rng()


@pytest.mark.parametrize('t0,tf', [(0., 0.), (1., 0.), (0., np.inf),
                                   (np.nan, 1.)])
def test_interval_bad_span(t0, tf):
    with pytest.raises(ConfigurationError):
        Interval(t0, tf)


def test_interval():
    interval = Interval(-1., 3.)
    assert interval.span == 4.
    np.testing.assert_array_equal(interval.contains([-2., -1., 0., 3., 4.]),
                                  [False, True, True, True, False])
    assert interval == Interval(-1, 3)
    assert hash(interval) == hash(Interval(-1., 3.))

    with pytest.raises(AttributeError):
        interval.t0 = 0.


def test_uniform_distribution():
    dist = UniformDistribution(0.1, 0.6)
    assert dist.kind == 'uniform'
    assert dist.lb == 0.1 and dist.ub == 0.6

    samples = dist.sample(1000, rng)
    assert samples.shape == (1000,)
    assert np.all(samples >= 0.1) and np.all(samples <= 0.6)

    np.testing.assert_allclose(dist.ppf([0., 0.5, 1.]), [0.1, 0.35, 0.6])

    with pytest.raises(AttributeError):
        dist.kind = 'normal'


def test_normal_distribution():
    dist = NormalDistribution(2., 0.5)
    assert dist.loc == 2. and dist.scale == 0.5
    np.testing.assert_allclose(dist.ppf(0.5), 2.)
    assert dist.frozen.std() == pytest.approx(0.5)


@pytest.mark.parametrize('kind,params', [
    ('uniform', {'lb': 1., 'ub': 1.}),
    ('uniform', {'lb': 0.}),
    ('normal', {'loc': 0., 'scale': -1.}),
    ('normal', {'loc': 0., 'scale': 1., 'shape': 2.}),
    ('beta', {'a': 1., 'b': 1.})])
def test_distribution_bad_params(kind, params):
    with pytest.raises(ConfigurationError):
        Distribution(kind, **params)


@pytest.mark.parametrize('kwargs', [{'num_points': 1},
                                    {'nodes_per_element': 1},
                                    {'extra_points': [0., np.nan]}])
def test_time_discretization_bad_input(kwargs):
    with pytest.raises(ConfigurationError):
        TimeDiscretization(**kwargs)


@pytest.mark.parametrize('kwargs', [{'num_samples': 0},
                                    {'num_samples': -3},
                                    {'method': 'halton'},
                                    {'seed': -1}])
def test_sample_discretization_bad_input(kwargs):
    with pytest.raises(ConfigurationError):
        SampleDiscretization(**kwargs)


def test_registry():
    registry = Registry(Interval(0., 10.))
    assert list(registry.domains) == ['t']
    assert registry.time_discretization.num_points == 101
    assert registry.sample_discretization.num_samples == 10

    registry = Registry(Interval(0., 10.),
                        uncertainty=UniformDistribution(0., 1.),
                        time_discretization=TimeDiscretization(
                            num_points=5, extra_points=[0.5]))
    assert list(registry.domains) == ['t', 'xi']

    registry.add_time_points([0.25, 7.])
    np.testing.assert_array_equal(registry.time_discretization.extra_points,
                                  [0.5, 0.25, 7.])
    assert registry.time_discretization.num_points == 5


@pytest.mark.parametrize('kwargs', [{'time': (0., 1.)},
                                    {'time': Interval(0., 1.),
                                     'uncertainty': Interval(0., 1.)},
                                    {'time': Interval(0., 1.),
                                     'time_discretization': 11}])
def test_registry_bad_input(kwargs):
    with pytest.raises(ConfigurationError):
        Registry(**kwargs)
