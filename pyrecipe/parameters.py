"""
Recipe parameters

Parameters are read from a json file keyed by recipe name. An entry of
the form "RECIPE:OBJECT" applies only to observations of that object
and overrides the recipe wide values, e.g.

    {
        "REDUCE_SCIENCE": {"NSIGMA": 3, "MAKE_MOSAIC": true},
        "REDUCE_SCIENCE:M31": {"NSIGMA": 5}
    }

Inside a recipe the parameters are available as RECPARS.
"""

import json
import logging

logger = logging.getLogger(__name__)


class RecipeParameters:
    """Parameters for all recipes, indexed by recipe name

    Parameters
    ----------
    parameters : dict or str, optional
        the parameters, or the name of a json file containing them
    """

    def __init__(self, parameters=None):
        if isinstance(parameters, str):
            parameters = self.read(parameters)
        self.parameters = dict(parameters or {})

    def __contains__(self, recipe):
        return recipe in self.parameters

    @staticmethod
    def read(fname):
        """Read parameters from a json file

        Raises
        ------
        ValueError
            if the file does not contain a mapping of recipe names to
            parameter mappings
        """
        logger.info("Loading recipe parameters from %s", fname)
        with open(fname) as f:
            parameters = json.load(f)

        if not isinstance(parameters, dict) or not all(
            isinstance(v, dict) for v in parameters.values()
        ):
            raise ValueError(
                f"Recipe parameter file {fname} must map recipe names to parameters"
            )
        return parameters

    def for_recipe(self, recipe, obj=None):
        """Parameters for a recipe, optionally specific to an object

        Parameters
        ----------
        recipe : str
            recipe name
        obj : str, optional
            name of the observed object, the object is matched case
            insensitive and ignoring spaces

        Returns
        -------
        parameters : dict
            recipe wide parameters updated by the object specific ones
        """
        parameters = dict(self.parameters.get(recipe, {}))
        if obj:
            wanted = _normalize(obj)
            for key, values in self.parameters.items():
                name, sep, target = key.partition(":")
                if sep and name == recipe and _normalize(target) == wanted:
                    logger.debug("Using %s specific parameters for %s", obj, recipe)
                    parameters.update(values)
        return parameters


def _normalize(name):
    return name.replace(" ", "").upper()


def verify_parameters(parameters, valid):
    """Warn about parameters a recipe does not support

    Parameters
    ----------
    parameters : dict
        recipe parameters
    valid : list(str)
        names of the supported parameters

    Returns
    -------
    invalid : list(str)
        sorted names of the unsupported parameters
    """
    invalid = sorted(set(parameters) - set(valid))
    for name in invalid:
        logger.warning("Ignoring unsupported recipe parameter %s", name)
    return invalid
