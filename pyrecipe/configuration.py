# -*- coding: utf-8 -*-
"""Loads configuration files

This module loads json configuration files from disk,
and combines them with the default settings,
to create one dict that contains all parameters.
It also checks that all parameters exists, and that
no new parameters have been added by accident.
"""

import json
import logging
from os.path import dirname, exists, join

import jsonschema

logger = logging.getLogger(__name__)


def get_configuration_for_instrument(instrument, **kwargs):
    """Default settings of an instrument

    Parameters
    ----------
    instrument : str
        instrument name, None or "pyrecipe" for the plain defaults
    **kwargs
        values that replace the setting of the same name in any section

    Returns
    -------
    config : dict
        validated settings
    """
    local = dirname(__file__)
    if instrument in ["pyrecipe", None]:
        fname = join(local, "settings", "settings_pyrecipe.json")
    else:
        fname = join(local, "settings", f"settings_{str(instrument).upper()}.json")
        if not exists(fname):
            logger.debug("No settings for %s, using the defaults", instrument)
            fname = join(local, "settings", "settings_pyrecipe.json")

    config = load_config(fname, instrument)

    for kwarg_key, kwarg_value in kwargs.items():
        for key, value in config.items():
            if isinstance(value, dict) and kwarg_key in value.keys():
                config[key][kwarg_key] = kwarg_value

    return config


def load_config(configuration, instrument, j=0):
    """Combine a configuration with the default settings

    Parameters
    ----------
    configuration : None, dict, list or str
        None for the instrument defaults, a dict of settings (or of
        settings per instrument), a list of those (pick entry j), or
        the name of a json file
    instrument : str
        instrument name
    j : int, optional
        index into a list of configurations

    Returns
    -------
    settings : dict
        validated settings

    Raises
    ------
    KeyError
        if a dict configuration is meant for another instrument
    ValueError
        if the result does not pass validation
    """
    if configuration is None:
        logger.info(
            "No configuration specified, using default values for this instrument"
        )
        return get_configuration_for_instrument(instrument)
    elif isinstance(configuration, dict):
        names = {str(key).upper(): key for key in configuration.keys()}
        if str(instrument).upper() in names:
            config = configuration[names[str(instrument).upper()]]
        elif (
            "__instrument__" not in configuration.keys()
            or configuration["__instrument__"] == str(instrument).upper()
        ):
            config = configuration
        else:
            raise KeyError("This configuration is for a different instrument")
    elif isinstance(configuration, list):
        config = configuration[j]
    elif isinstance(configuration, str):
        config = configuration
    else:
        raise TypeError(f"Can not load a configuration from {type(configuration)}")

    if isinstance(config, str):
        logger.info("Loading configuration from %s", config)
        try:
            with open(config) as f:
                config = json.load(f)
        except FileNotFoundError:
            fname = dirname(__file__)
            fname = join(fname, "settings", config)
            with open(fname) as f:
                config = json.load(f)

    # Combine instrument specific settings, with default values
    settings = read_config()
    settings = update(settings, config)

    # If it doesn't raise an Exception everything is as expected
    validate_config(settings)
    logger.debug("Configuration succesfully validated")

    return settings


def update(dict1, dict2, check=True, name="dict1"):
    """
    Update entries in dict1 with entries of dict2 recursively,
    i.e. if the dict contains a dict value, values inside the dict will
    also be updated

    Parameters
    ----------
    dict1 : dict
        dict that will be updated
    dict2 : dict
        dict that contains the values to update
    check : bool
        If True, will warn about keys from dict2 that do not exist in dict1.
        Except for those contained in field "engines"

    Returns
    -------
    dict1 : dict
        the updated dict
    """
    # Engines is a 'special' section as it may include any number of engines
    # In that case we don't want to warn about new keys
    exclude = ["engines"]
    for key, value in dict2.items():
        if check and key not in dict1.keys():
            logger.warning(f"{key} is not contained in {name}")
        if isinstance(value, dict) and isinstance(dict1.get(key), dict):
            dict1[key] = update(
                dict1[key], value, check=check and key not in exclude, name=key
            )
        else:
            dict1[key] = value
    return dict1


def read_config(fname="settings_pyrecipe.json"):
    """Read the configuration file from disk

    If no filename is given it will load the default configuration.
    The configuration file must be a json file.

    Parameters
    ----------
    fname : str, optional
        Filename of the configuration. By default "settings_pyrecipe.json",
        i.e. the default configuration

    Returns
    -------
    config : dict
        The read configuration file
    """
    this_dir = dirname(__file__)
    fname = join(this_dir, "settings", fname)

    with open(fname) as file:
        settings = json.load(file)
        return settings


def validate_config(config):
    """Test that the input configuration complies with the expected schema

    If the function runs through without raising an exception, the check was succesful.

    Parameters
    ----------
    config : dict
        Configurations to check

    Raises
    ------
    ValueError
        If there is a problem with the configuration.
        Usually that means a setting has an unallowed value.
    """
    fname = "settings_schema.json"
    this_dir = dirname(__file__)
    fname = join(this_dir, "settings", fname)

    with open(fname) as f:
        schema = json.load(f)
    try:
        jsonschema.validate(schema=schema, instance=config)
    except jsonschema.ValidationError as ve:
        logger.error("Configuration failed validation check.\n%s", ve.message)
        raise ValueError(ve.message)
