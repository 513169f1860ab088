from ..errors import ConfigurationError


class ProblemParameters:
    """
    Container for the model constants of an `InfiniteProblem`. Parameters are
    accessible as attributes, e.g. `params.eps`, or by name, `params['eps']`.
    Updates are validated by a hook and are atomic: if the hook rejects the new
    values, the previous values are restored before the error propagates.

    Parameters
    ----------
    required : iterable of str, default=()
        Names of parameters which cannot be None.
    update_fun : callable, optional
        Hook executed whenever parameters are modified by `update`, with call
        signature `update_fun(obj, **params)` where `obj` is this
        `ProblemParameters` instance and `params` are the modified parameters.
        It may set derived attributes on `obj`, and should raise a
        `ConfigurationError` to reject invalid values.
    **params : dict
        Initial parameter values.
    """
    def __init__(self, required=(), update_fun=None, **params):
        if update_fun is None:
            self._update_fun = lambda obj, **p: None
        elif callable(update_fun):
            self._update_fun = update_fun
        else:
            raise TypeError('update_fun must be set with a callable')

        self._param_dict = dict()
        self.required = set(required)
        if len(params):
            self.update(**params)

    def __contains__(self, name):
        return name in self._param_dict

    def __getitem__(self, name):
        return self._param_dict[name]

    def update(self, check_required=True, **params):
        """
        Modify one or more parameters and run the validation hook.

        Parameters
        ----------
        check_required : bool, default=True
            Ensure that all required parameters are set after updating.
        **params : dict
            Parameters to change, as keyword arguments.

        Raises
        ------
        ConfigurationError
            If a required parameter is None after updating, or if the
            validation hook rejects the new values. In either case the
            parameters are left as they were before the call.
        """
        old_params = dict(self._param_dict)
        old_attrs = dict(self.__dict__)

        self._param_dict.update(params)
        self.__dict__.update(params)

        try:
            if check_required:
                missing = [p for p in sorted(self.required)
                           if getattr(self, p, None) is None]
                if missing:
                    raise ConfigurationError(f"{', '.join(missing)} required "
                                             f"but not set")
            self._update_fun(self, **params)
        except Exception:
            self.__dict__.clear()
            self.__dict__.update(old_attrs)
            self._param_dict = old_params
            raise

    def as_dict(self):
        """
        Get a copy of all named parameters.

        Returns
        -------
        parameter_dict : dict
            All parameters set with `__init__` or `update`. Derived attributes
            set by the validation hook are not included.
        """
        return dict(self._param_dict)

    def __repr__(self):
        params = ", ".join(f"{k}={v!r}" for k, v in self._param_dict.items())
        return f"ProblemParameters({params})"
