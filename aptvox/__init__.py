"""
The aptvox Package: Voxelization and Ranging of Atom Probe Data
===============================================================

The aptvox package provides building blocks for the interactive analysis of
atom probe tomography (APT) data. Its core is an N-dimensional voxelization
routine, which distributes the atoms of a reconstructed data set into a grid
defined by arbitrary, possibly non-uniform, bin edges. Atoms outside of the bin
edges are never dropped but collected in dedicated overflow voxels.

In addition, the package provides the bookkeeping for fixed-width ranges in
mass spectra, ensuring that ranges assigned to different ions do not overlap.

The package is a pure computational library. Plotting and user interaction are
left to the calling application.


Available subpackages
---------------------

.. toctree::
   :maxdepth: 1

   The aptvox analysis subpackage (aptvox.analysis)<aptvox.analysis>
   The aptvox file input/output subpackage (aptvox.io)<aptvox.io>
"""
__version__ = '0.1.0'
