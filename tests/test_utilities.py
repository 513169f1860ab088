import numpy as np
import pandas as pd
import pytest

from infinitecontrol import utilities
from infinitecontrol.errors import ConfigurationError


rng = np.random.default_rng()


@pytest.mark.parametrize('n', [0., 1.5, np.array([[5], [6]]), [7, 8], 'n'])
def test_check_int_input_bad_type(n):
    """Make sure `check_int_input` catches a range of bad input types."""
    with pytest.raises(TypeError):
        utilities.check_int_input(n, 'n')


@pytest.mark.parametrize('shape', [(), (1,), (1, 1)])
def test_check_int_input(shape):
    """Make sure `check_int_input` works with a variety of acceptable inputs."""
    n = rng.choice(100, size=shape) - 50
    _n = int(np.squeeze(n))
    assert utilities.check_int_input(n.tolist(), 'n') == _n
    for dtype in [np.int8, np.int16, np.int32, np.int64]:
        assert utilities.check_int_input(n.astype(dtype), 'n') == _n


@pytest.mark.parametrize('low', [0, 1, -5, 10])
def test_check_int_input_with_low(low):
    """Make sure `check_int_input` works with minimum inputs and throws an error
    if the desired minimum is not found."""
    assert utilities.check_int_input(low, 'n', low=low) == low
    assert utilities.check_int_input(low + 1, 'n', low=low) == low + 1
    with pytest.raises(ConfigurationError):
        utilities.check_int_input(low - 1, 'n', low=low)


def test_check_float_input():
    assert utilities.check_float_input(np.array([2]), 'x') == 2.
    assert utilities.check_float_input(1., 'x', low=1.) == 1.
    assert utilities.check_float_input(1., 'x', high=1.) == 1.

    for kwargs in [{'low': 1., 'strict': True}, {'high': 1., 'strict': True},
                   {'low': 2.}, {'high': 0.}]:
        with pytest.raises(ConfigurationError):
            utilities.check_float_input(1., 'x', **kwargs)

    for x in [np.inf, np.nan, 'x', [1., 2.]]:
        with pytest.raises(ConfigurationError):
            utilities.check_float_input(x, 'x')


@pytest.mark.parametrize('method', ['2-point', '3-point'])
def test_approx_partials(method):
    x = rng.normal(size=(6, 3))

    def fun(x):
        return np.sin(x) * x

    expected = np.cos(x) * x + np.sin(x)
    dfdx = utilities.approx_partials(fun, x, method=method)
    np.testing.assert_allclose(dfdx, expected, rtol=1e-05, atol=1e-06)

    with pytest.raises(ValueError):
        utilities.approx_partials(fun, x, method='cs')


def _make_table(n_rows):
    return pd.DataFrame({'t': np.linspace(0., 1., n_rows),
                         'x': rng.normal(size=n_rows)})


def test_save_load(tmp_path):
    filepath = tmp_path / 'data.csv'
    tables = [_make_table(5), _make_table(3)]

    utilities.save_data(tables, filepath)
    loaded = utilities.load_data(filepath)
    assert len(loaded) == 2
    for table, loaded_table in zip(tables, loaded):
        pd.testing.assert_frame_equal(table, loaded_table)

    # Append another run
    utilities.save_data(_make_table(4), filepath, overwrite=False)
    loaded = utilities.load_data(filepath)
    assert [len(table) for table in loaded] == [5, 3, 4]

    # Overwrite
    utilities.save_data(_make_table(2), filepath)
    loaded = utilities.load_data(filepath)
    assert len(loaded) == 1 and len(loaded[0]) == 2


def test_load_without_runs(tmp_path):
    filepath = tmp_path / 'data.csv'
    table = _make_table(4)
    table.to_csv(filepath, index=False)
    loaded = utilities.load_data(filepath)
    assert len(loaded) == 1
    pd.testing.assert_frame_equal(loaded[0], table)


def test_append_without_runs(tmp_path):
    """Appending to a table saved without run labels keeps it as the first
    run."""
    filepath = tmp_path / 'data.csv'
    table = _make_table(4)
    table.to_csv(filepath, index=False)

    utilities.save_data(_make_table(3), filepath, overwrite=False)
    loaded = utilities.load_data(filepath)
    assert [len(df) for df in loaded] == [4, 3]
    pd.testing.assert_frame_equal(loaded[0], table)
