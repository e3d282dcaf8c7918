# -*- coding: utf8 -*-
# SPDX-License-Identifier: CECILL-2.1
"""
Config class for codaspec.

Configuration values and their defaults are defined in ``configspec.conf``.
There is no global configuration object: every operation receives its
configuration explicitly.

:copyright:
    2026 The codaspec developers
:license:
    CeCILL Free Software License Agreement v2.1
    (http://www.cecill.info/licences.en.html)
"""
import os
from configobj import ConfigObj, ConfigObjError
from configobj.validate import Validator
from codaspec.csp_errors import InvalidParameterError


class Config(dict):
    """Config class for codaspec."""

    def __init__(self, *args, **kwargs):
        super().__init__()
        self.update(dict(*args, **kwargs))

    def __setitem__(self, key, value):
        """Make Config keys accessible as attributes."""
        super().__setattr__(key, value)
        super().__setitem__(key, value)

    def __getattr__(self, key):
        """Make Config keys accessible as attributes."""
        try:
            return self.__getitem__(key)
        except KeyError as err:
            raise AttributeError(err) from err

    __setattr__ = __setitem__

    def update(self, other):
        """
        Update the configuration with the values from another dictionary.

        :param dict other: The dictionary with the new values
        """
        for key, value in other.items():
            self[key] = value
        # Set to None all the 'None' strings
        for key, value in self.items():
            if value == 'None':
                self[key] = None

    def copy(self):
        return Config(self)

    def validate(self):
        """
        Validate the configuration.

        :raises InvalidParameterError: If one or more values are invalid
        """
        config_obj = ConfigObj(self, configspec=_parse_configspec())
        val = Validator()
        test = config_obj.validate(val)
        # The variable "test" is:
        # - True if everything is ok
        # - False if no config value is provided
        # - A dict if invalid values are present,
        #   with the invalid values as False
        msg = ''
        if isinstance(test, dict):
            for entry in [e for e in test if not test[e]]:
                msg += f'\nInvalid value for "{entry}": "{config_obj[entry]}"'
            raise InvalidParameterError(msg)
        if not test:
            raise InvalidParameterError('No configuration value present!')
        # Reupdate the config object with the validated values, which include
        # type conversion from string to numeric values
        self.update(config_obj.dict())
        self._check_min_max('mw_min_max')
        self._check_min_max('apparent_stress_min_max', positive=True)
        self._check_stress_starts()

    def _check_min_max(self, param, positive=False):
        vmin, vmax = self[param]
        if positive and vmin <= 0:
            raise InvalidParameterError(
                f'"{param}": minimum must be positive, got {vmin}')
        if vmin >= vmax:
            raise InvalidParameterError(
                f'"{param}": minimum ({vmin}) must be smaller than '
                f'maximum ({vmax})')

    def _check_stress_starts(self):
        if any(stress <= 0 for stress in self.stress_starts):
            raise InvalidParameterError(
                '"stress_starts": all the values must be positive')


def _read_config_file(config_file, configspec=None):
    kwargs = {
        'configspec': configspec,
        'file_error': True,
        'default_encoding': 'utf8'
    }
    if configspec is None:
        kwargs.update({
            'interpolation': False,
            'list_values': False,
            '_inspec': True
        })
    try:
        config_obj = ConfigObj(config_file, **kwargs)
    except ConfigObjError as err:
        raise InvalidParameterError(
            f'Unable to read "{config_file}": {err}') from err
    return config_obj


def _parse_configspec():
    configspec_file = os.path.join(
        os.path.dirname(__file__), 'configspec.conf')
    return _read_config_file(configspec_file)


def _get_default_config_obj(configspec):
    config_obj = ConfigObj(configspec=configspec, default_encoding='utf8')
    val = Validator()
    config_obj.validate(val)
    config_obj.defaults = []
    config_obj.initial_comment = configspec.initial_comment
    config_obj.comments = configspec.comments
    config_obj.final_comment = configspec.final_comment
    return config_obj


def default_config():
    """Return a new Config object with the default values."""
    configspec = _parse_configspec()
    return Config(_get_default_config_obj(configspec).dict())


def read_config(config_file):
    """
    Read and validate a configuration file.

    Values not present in the file take their default value.

    :param config_file: path to the configuration file
    :return: validated :class:`Config` object
    :raises InvalidParameterError: if the file cannot be parsed or contains
        invalid values
    """
    configspec = _parse_configspec()
    config_obj = _read_config_file(config_file, configspec)
    config = default_config()
    # only keep the values explicitly set in the file
    config.update({
        key: value for key, value in config_obj.dict().items()
        if key in configspec})
    config.validate()
    return config


def write_sample_config(config_file):
    """Write a sample configuration file, with comments."""
    config_obj = _get_default_config_obj(_parse_configspec())
    with open(config_file, 'wb') as fp:
        config_obj.write(fp)
