"""
The aptvox configuration module
===============================

This module provides functions to load and access user-specific configuration
settings for the aptvox package. It automatically manages the location of the
configuration file using platform-specific directories, and creates a default
configuration file if none is found.

The configuration file is written in TOML format and holds the default
parameters of the voxelization and mass spectrum range routines, e.g. the
default voxel width used to generate bin edges from position data, or the
default width of fixed-width mass spectrum ranges.

Configuration files are cached for performance and can be reloaded on demand.
Nested configuration settings can be accessed using dot notation.


Configuration file location
---------------------------

The configuration file is stored in a platform-specific user directory. For
example:

- Linux: ``~/.config/aptvox/config.toml``
- Windows: ``%USERPROFILE%\\AppData\\Local\\aptvox\\aptvox\\config.toml``

These locations are determined automatically using the |platformdirs| package.


Default configuration structure
-------------------------------

.. code-block:: toml

    [voxel]
    width = 1.0

    [ranges]
    width = 0.5


Explanation
^^^^^^^^^^^

- **[voxel]**

  - ``width`` (float): the default voxel width (in nm) used to generate bin
    edges from position data.

- **[ranges]**

  - ``width`` (float): the default width (in amu/e) of fixed-width mass
    spectrum ranges.


List of functions
-----------------

* :func:`get_setting`: Retrieve a nested setting from the configuration.
* :func:`load_config`: Load configuration from file (or cache if already
  loaded).


.. |platformdirs| raw:: html

        <a href="https://platformdirs.readthedocs.io/en/latest/"
        target="_blank">platformdirs</a>
"""
#
#
#
#
__version__ = "0.1.0"
__all__ = [
    "get_setting",
    "load_config"
]
#
#
#
#
# import modules
import logging
import tomllib
#
# import special functions
from pathlib import Path
from platformdirs import user_config_dir
#
#
#
#
# set up logger
logger = logging.getLogger(__name__)
#
#
#
#
################################################################################
#
# internal configuration
#
################################################################################
# configuration file name and path
_APP_NAME = "aptvox"
_CONFIG_FILENAME = "config.toml"
_CONFIG_DIR = Path(user_config_dir(_APP_NAME))
_CONFIG_PATH = _CONFIG_DIR / _CONFIG_FILENAME
#
#
# default configuration content
_DEFAULT_CONFIG_TEXT = """\
# default voxel width in nm
[voxel]
width = 1.0

# default width of mass spectrum ranges in amu/e
[ranges]
width = 0.5
"""
#
#
#
#
################################################################################
#
# private module-level variables
#
################################################################################
# cached configuration dictionary
_config_cache = None
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def get_setting(key_path):
    """
    Retrieve a nested setting from the configuration.

    Parameters
    ----------
    key_path : str
        Dot-separated path to the config setting, e.g. ``"ranges.width"``.

    Returns
    -------
    Any
        The requested config value.

    Raises
    ------
    KeyError
        If the setting does not exist.
    """
    #
    #
    # load configuration
    config = load_config()
    #
    #
    # traverse along configuration dictionary
    for key in key_path.split("."):
        try:
            config = config[key]
        except (KeyError, TypeError):
            raise KeyError(
                f"Setting \"{key_path}\" not found in configuration."
            )
    #
    #
    # return (nested) configuration setting
    return config
#
#
#
#
def load_config(force_reload = False):
    """
    Load configuration from file (or cache if already loaded).

    Parameters
    ----------
    force_reload : bool
        Whether to reload the configuration file from disk.

    Returns
    -------
    dict
        The parsed configuration dictionary.
    """
    #
    #
    # use global configuration cache
    global _config_cache
    #
    #
    # create configuration directory if not present
    if not _CONFIG_DIR.exists():
        logger.info(f"Creating configuration directory at \"{_CONFIG_DIR}\".")
        _CONFIG_DIR.mkdir(parents = True, exist_ok = True)
    #
    #
    # create default configuration file if not present
    if not _CONFIG_PATH.exists():
        logger.info(
            f"Creating default configuration file \"{_CONFIG_FILENAME}\"."
        )
        _CONFIG_PATH.write_text(_DEFAULT_CONFIG_TEXT, encoding = "utf-8")
    #
    #
    # load configuration from file; settings missing in the user file fall
    # back to the defaults
    if _config_cache is None or force_reload:
        logger.info(f"Loading configuration from \"{_CONFIG_PATH}\".")
        with _CONFIG_PATH.open("rb") as f:
            user_config = tomllib.load(f)
        _config_cache = _merge(tomllib.loads(_DEFAULT_CONFIG_TEXT), user_config)
    else:
        logger.debug("Using cached configuration settings.")
    #
    #
    # return (cached) configuration
    return _config_cache
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
def _merge(defaults, overrides):
    """Recursively merge user settings into the default settings.

    Parameters
    ----------
    defaults : dict
        The default settings.
    overrides : dict
        The user settings, taking precedence over *defaults*.

    Returns
    -------
    merged : dict
        The merged settings. Neither input dictionary is modified.
    """
    #
    #
    merged = dict(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged
