"""
The aptvox analysis subpackage
==============================

The `aptvox.analysis` subpackage provides tools for the analysis of atom probe
tomography (APT) data. It enables users to:

- **Voxelize reconstructed data**, i.e. distribute the atoms of a
  reconstructed data set into a (possibly irregular) grid for local analysis;
- **Manage mass spectrum ranges**, i.e. define non-overlapping fixed-width
  mass-to-charge intervals for ion identification.


Available modules
-----------------

.. toctree::
   :maxdepth: 1

   The aptvox spectrum range module \
      (aptvox.analysis.spectrum)<aptvox.analysis.spectrum>
   The aptvox voxelization module \
      (aptvox.analysis.voxel)<aptvox.analysis.voxel>
"""
__version__ = '0.1.0'
__all__ = ['spectrum', 'voxel']
