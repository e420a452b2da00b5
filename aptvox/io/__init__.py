"""
The aptvox file input/output subpackage
=======================================

The ``aptvox.io`` subpackage provides the input/output facilities of aptvox.
Currently, this is restricted to the user configuration file, which holds the
default parameters of the analysis routines.


Available modules
-----------------

The following modules are available in this subpackage:

.. toctree::
   :maxdepth: 1

   The aptvox configuration module (aptvox.io.config)<aptvox.io.config>
"""
__version__ = "0.1.0"
__all__ = ["config"]
