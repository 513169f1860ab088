import numpy as np
import pandas as pd

from .errors import ConfigurationError


_eps = np.finfo(float).eps


def check_int_input(n, argname, low=None):
    """
    Convert an input to an int, raising errors if this is not possible without
    likely loss of information or if the int is less than a specified minimum.

    Parameters
    ----------
    n : array_like, size 1
        Input to check.
    argname : str
        How to refer to the argument `n` in error messages.
    low : int, optional
        Minimum value which `n` should take.

    Raises
    ------
    TypeError
        If `n` is not an int or array_like of size 1.
    ConfigurationError
        If `n < low`.

    Returns
    -------
    n : int
        Input `n` converted to an int, if possible.
    """
    if not isinstance(argname, str):
        raise TypeError("argname must be a str")
    if low is not None:
        low = check_int_input(low, 'low')

    try:
        n = np.squeeze(n).astype(np.int64, casting='safe')
        n = int(n)
    except TypeError:
        raise TypeError(f"{argname} must be an int")

    if low is not None and n < low:
        raise ConfigurationError(f"{argname} must be greater than or equal to "
                                 f"{low:d}")

    return n


def check_float_input(x, argname, low=None, high=None, strict=False):
    """
    Convert an input to a finite float, raising a `ConfigurationError` if it is
    not finite or falls outside of given limits.

    Parameters
    ----------
    x : array_like, size 1
        Input to check.
    argname : str
        How to refer to the argument `x` in error messages.
    low : float, optional
        Minimum value which `x` should take.
    high : float, optional
        Maximum value which `x` should take.
    strict : bool, default=False
        If True, require `low < x < high` rather than `low <= x <= high`.

    Returns
    -------
    x : float
        Input `x` converted to a float.
    """
    try:
        x = float(np.squeeze(x))
    except (TypeError, ValueError):
        raise ConfigurationError(f"{argname} must be a float")

    if not np.isfinite(x):
        raise ConfigurationError(f"{argname} must be finite, got {x}")

    if low is not None and (x < low or (strict and x == low)):
        raise ConfigurationError(f"{argname} = {x} must be "
                                 f"{'>' if strict else '>='} {low}")
    if high is not None and (x > high or (strict and x == high)):
        raise ConfigurationError(f"{argname} = {x} must be "
                                 f"{'<' if strict else '<='} {high}")

    return x


def approx_partials(fun, x0, method='3-point', f0=None):
    """
    Finite difference approximation of the derivative of a pointwise function,
    i.e. a function for which `fun(x)[..., j]` depends only on `x[..., j]` after
    broadcasting. Since the Jacobian of such a function is diagonal, all entries
    of `x0` are perturbed simultaneously and a single array of partial
    derivatives is returned.

    Parameters
    ----------
    fun : callable
        Pointwise function to differentiate. Called as `fun(x)` with `x` of the
        same shape as `x0`.
    x0 : array
        Point(s) at which to estimate the derivatives.
    method : {'3-point', '2-point'}, default='3-point'
        Use central ('3-point') or forward ('2-point') differences.
    f0 : array, optional
        `fun(x0)`, pre-evaluated. Only used if `method=='2-point'`.

    Returns
    -------
    dfdx : array
        Partial derivatives with the broadcast shape of `fun(x0)`.
    """
    x0 = np.asarray(x0, dtype=float)

    if method == '3-point':
        h = _eps ** (1. / 3.) * np.maximum(1., np.abs(x0))
        x1, x2 = x0 - h, x0 + h
        # Recompute steps as exactly representable numbers
        return (fun(x2) - fun(x1)) / (x2 - x1)
    elif method == '2-point':
        h = np.sqrt(_eps) * np.maximum(1., np.abs(x0))
        x1 = x0 + h
        if f0 is None:
            f0 = fun(x0)
        return (fun(x1) - f0) / (x1 - x0)

    raise ValueError(f"Unknown method '{method}'. ")


def save_data(data, filepath, overwrite=True):
    """
    Save one or more solution tables (see `Solution.to_dataframe`) to a csv
    file. Tables are concatenated vertically and tagged with a 'run' column so
    they can be separated again by `load_data`.

    Parameters
    ----------
    data : DataFrame or list of DataFrames
        Solution tables to save.
    filepath : path-like
        Where the csv file should be saved.
    overwrite : bool, default=True
        If True, overwrite the csv file at `filepath`, if it exists. If False,
        append the data to the end of the existing csv.
    """
    if isinstance(data, pd.DataFrame):
        data = [data]

    start = 0
    if not overwrite:
        try:
            existing_data = pd.read_csv(filepath)
        except FileNotFoundError:
            existing_data = None
        else:
            # Tables written without run labels are a single run
            if 'run' not in existing_data.columns:
                existing_data['run'] = 0
            start = int(existing_data['run'].max()) + 1
    else:
        existing_data = None

    tables = [df.assign(run=start + k) for k, df in enumerate(data)]
    if existing_data is not None:
        tables = [existing_data] + tables

    pd.concat(tables, ignore_index=True).to_csv(filepath, index=False)


def load_data(filepath):
    """
    Load solution tables saved by `save_data`.

    Parameters
    ----------
    filepath : path-like
        Path to the csv file.

    Returns
    -------
    data : list of DataFrames
        One table per saved run, without the 'run' column.
    """
    dataframe = pd.read_csv(filepath)
    if 'run' not in dataframe.columns:
        return [dataframe]

    return [df.drop(columns='run').reset_index(drop=True)
            for _, df in dataframe.groupby('run', sort=True)]
