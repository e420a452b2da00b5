"""
The aptvox voxelization module
==============================

This module distributes the atoms of a three-dimensional (or lower-dimensional)
data set into a regular or irregular grid of voxels. For every voxel, the list
of atoms it contains is returned, which can then be used for any subsequent
local analysis (e.g. local compositions, density fluctuations, or concentration
profiles).


General procedure
-----------------

The voxelization is performed in three consecutive steps:

1. **Digitization**: For every dimension *d*, the feature value of each atom
   (typically its position, but any per-atom quantity such as a distance to an
   interface may be used) is mapped to a bin index with respect to the bin
   edges of that dimension (see :func:`digitize`).
2. **Accumulation**: The per-dimension bin indices are combined into a
   composite voxel coordinate and the atom indices are grouped by voxel (see
   :func:`accumulate`).
3. **Materialization**: The atom indices of each voxel are replaced by the
   respective atomic positions (see :func:`materialize`).

The function :func:`voxelize` performs all three steps at once.


Bucketing convention
--------------------

For the bin edges :math:`e_1 < e_2 < \\ldots < e_k` of one dimension, a value
:math:`v` is assigned to the bin index

- :math:`i` if :math:`e_i \\leq v < e_{i+1}` for :math:`i = 1, \\ldots, k-2`,
- :math:`k-1` if :math:`e_{k-1} \\leq v \\leq e_k`, i.e. the last edge is
  inclusive,
- :math:`0` if :math:`v < e_1`, :math:`v > e_k`, or :math:`v` is not a number.

The bin index :math:`0` therefore denotes the *overflow* voxel layer of the
respective dimension. Atoms outside the bin edges are never discarded. Instead,
they are collected in the overflow voxels, which are part of the returned grid.
Note that atoms below the first and above the last bin edge share the same
overflow index.


Grid layout
-----------

The returned :class:`VoxelGrid` is dense, i.e. every voxel coordinate between
:math:`0` and the grid extent is present, even if the voxel is empty. The extent
in each dimension is the number of bins, unless larger bin indices have been
observed, in which case the grid grows accordingly. For one-dimensional
binning, a trailing dimension of extent :math:`1` is appended, so that voxels
are always addressed by coordinate tuples, e.g. ``grid[3, 1]``.


List of classes
---------------

* :class:`ContractViolation`: Invalid input to the voxelization routines.
* :class:`VoxelGrid`: Dense grid of voxels.


List of functions
-----------------

* :func:`accumulate`: Group atom indices by voxel.
* :func:`digitize`: Map values to bin indices.
* :func:`get_bin_edges`: Get regularly spaced bin edges from position data.
* :func:`materialize`: Replace atom indices by atomic positions.
* :func:`voxelize`: Distribute atoms into voxels.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'ContractViolation',
    'VoxelGrid',
    'accumulate',
    'digitize',
    'get_bin_edges',
    'materialize',
    'voxelize'
]
#
#
#
#
# import modules
import logging
import math
import numba
import numpy as np
import warnings
#
# import some special functions
from aptvox.io.config import get_setting
from psutil import virtual_memory
from sys import getsizeof
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
# private module-level variables
#
################################################################################
_id_dtype = np.int64
"The type of the atom indices stored in the voxels."
_overflow = 0
"The bin index of values outside the bin edges."
_mem_threshold = 0.50
"""float : The default fraction of available memory above which the allocation
of a dense voxel grid triggers a warning."""
#
#
#
#
################################################################################
#
# public classes
#
################################################################################
class ContractViolation(ValueError):
    """Invalid input to the voxelization routines.

    Raised before any processing takes place, e.g. if the number of feature
    dimensions does not match the number of bin edge sets, or if bin edges are
    not strictly increasing.
    """
#
#
#
#
class VoxelGrid:
    """Dense grid of voxels.

    Every voxel holds a NumPy array, either of atom indices (as returned by
    :func:`accumulate`) or of atomic positions (as returned by
    :func:`materialize`). Voxels are addressed by integer coordinate tuples,
    where the coordinate ``0`` refers to the overflow layer of the respective
    dimension.

    Parameters
    ----------
    cells : ndarray, dtype object
        The dense array of voxels with one axis per grid dimension.
    nominal_bins : tuple
        The nominal number of bins per dimension, as defined by the bin edges.
    """
    def __init__(self, cells, nominal_bins):
        if cells.ndim != len(nominal_bins):
            raise ContractViolation(
                f"Grid dimension ({cells.ndim}) does not match number of "
                f"nominal bin counts ({len(nominal_bins)})."
            )
        self.cells = cells
        self.nominal_bins = tuple(int(n) for n in nominal_bins)
    #
    #
    def __getitem__(self, coords):
        return self.cells[coords]
    #
    #
    def __iter__(self):
        for coords in np.ndindex(self.cells.shape):
            yield coords, self.cells[coords]
    #
    #
    def __repr__(self):
        return (
            f"VoxelGrid(extent = {self.extent}, "
            f"nominal_bins = {self.nominal_bins}, total = {self.total()})"
        )
    #
    #
    @property
    def extent(self):
        """tuple : The largest addressable voxel coordinate per dimension."""
        return tuple(n - 1 for n in self.cells.shape)
    #
    #
    @property
    def ndim(self):
        """int : The number of grid dimensions."""
        return self.cells.ndim
    #
    #
    @property
    def shape(self):
        """tuple : The number of voxels per dimension, including the overflow
        layer."""
        return self.cells.shape
    #
    #
    @property
    def size(self):
        """int : The total number of voxels, including empty ones."""
        return self.cells.size
    #
    #
    def counts(self):
        """Get the number of atoms in each voxel.

        Returns
        -------
        counts : ndarray, shape :attr:`shape`
            The number of atoms in each voxel.
        """
        return np.fromiter(
            (len(c) for c in self.cells.flat), dtype = np.int64,
            count = self.cells.size
        ).reshape(self.cells.shape)
    #
    #
    def nonempty(self):
        """Get the coordinates of all occupied voxels (in C order).

        Returns
        -------
        coords : list
            The list of coordinate tuples of the voxels containing at least one
            atom.
        """
        return [
            tuple(int(i) for i in c) for c in np.argwhere(self.counts() > 0)
        ]
    #
    #
    def total(self):
        """Get the total number of atoms in the grid."""
        return int(self.counts().sum())
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def accumulate(loc, nominal_bins, **kwargs):
    """Group atom indices by voxel.

    The extent of the grid in each dimension is the maximum of the nominal
    number of bins and the largest observed bin index. For one-dimensional
    input, a trailing dimension of extent ``1`` is appended.

    Parameters
    ----------
    loc : ndarray, shape (n, d)
        The bin indices of the *n* atoms in each of the *d* dimensions, as
        obtained from :func:`digitize`. One-dimensional input is treated as
        *shape (n, 1)*.
    nominal_bins : array_like, shape (d,)
        The nominal number of bins per dimension, i.e. the number of bin edges
        minus one.

    Keyword Arguments
    -----------------
    mem_threshold : float
        The fraction of available memory above which the allocation of the
        dense grid triggers a warning. The grid is allocated nonetheless.
        Default: ``0.5``.

    Returns
    -------
    grid : VoxelGrid
        The grid of voxels, each holding the (ascending) indices of its atoms.

    Raises
    ------
    ContractViolation
        If the number of dimensions of *loc* and *nominal_bins* differ, or if
        non-integer or negative bin indices are encountered.
    """
    #
    #
    # check input; empty input may come without integer type
    loc = np.asarray(loc)
    if loc.size > 0 and not np.issubdtype(loc.dtype, np.integer):
        raise ContractViolation(
            f"Bin indices must be integers (got type {loc.dtype})."
        )
    loc = loc.astype(_id_dtype)
    if loc.ndim == 1:
        loc = loc.reshape(-1, 1)
    nominal_bins = np.atleast_1d(np.asarray(nominal_bins, dtype = _id_dtype))
    if loc.ndim != 2 or nominal_bins.ndim != 1 or \
       loc.shape[1] != len(nominal_bins):
        raise ContractViolation(
            f"Bin indices of shape {loc.shape} do not match "
            f"{len(nominal_bins)} nominal bin count(s)."
        )
    if np.any(loc < 0) or np.any(nominal_bins < 0):
        raise ContractViolation("Bin indices must not be negative.")
    #
    #
    # grid extent grows if larger bin indices have been observed
    extent = nominal_bins.copy()
    if len(loc) > 0:
        extent = np.maximum(extent, loc.max(axis = 0))
    #
    # append trailing dimension for one-dimensional binning
    if len(extent) == 1:
        extent       = np.append(extent, 1)
        nominal_bins = np.append(nominal_bins, 1)
        loc = np.column_stack((loc, np.ones(len(loc), dtype = _id_dtype)))
    #
    # the overflow layer adds one voxel per dimension
    shape = tuple(int(n) + 1 for n in extent)
    n_cells = math.prod(shape)
    logger.debug(
        f"Accumulating {len(loc)} atoms into grid of extent "
        f"{tuple(int(n) for n in extent)} ({n_cells} voxels)."
    )
    _check_memory(n_cells, kwargs.get('mem_threshold', _mem_threshold))
    #
    #
    # stable sort of flat voxel indices keeps ascending atom indices per voxel
    flat  = np.ravel_multi_index(tuple(loc.T), shape)
    order = np.argsort(flat, kind = 'stable').astype(_id_dtype)
    voxel_ids, starts = np.unique(flat[order], return_index = True)
    #
    #
    # set up dense grid of (empty) voxels and fill occupied ones
    cells = np.empty(n_cells, dtype = object)
    for i in range(n_cells):
        cells[i] = np.empty(0, dtype = _id_dtype)
    for voxel_id, members in zip(voxel_ids, np.split(order, starts[1:])):
        cells[voxel_id] = members
    #
    #
    return VoxelGrid(cells.reshape(shape), nominal_bins)
#
#
#
#
def digitize(values, edges):
    """Map values to bin indices.

    See :ref:`bucketing convention<aptvox.analysis.voxel:Bucketing convention>`
    for the exact assignment rules.

    Parameters
    ----------
    values : float or array_like, shape (n,)
        The values to be digitized.
    edges : array_like, shape (k,)
        The strictly increasing bin edges, with *k* ≥ 2.

    Returns
    -------
    idx : int or ndarray, shape (n,)
        The bin indices in the range ``0`` (overflow) to *k - 1*. A scalar is
        returned for scalar input.

    Raises
    ------
    ContractViolation
        If the bin edges are invalid or *values* is not one-dimensional.
    """
    #
    #
    edges = _check_edges(edges)
    #
    is_scalar = np.ndim(values) == 0
    values = np.ascontiguousarray(np.atleast_1d(values), dtype = np.float64)
    if values.ndim != 1:
        raise ContractViolation(
            f"Values must be one-dimensional (got shape {values.shape})."
        )
    #
    #
    idx = __digitize(values, edges)
    return int(idx[0]) if is_scalar else idx
#
#
#
#
def get_bin_edges(pos, width = None):
    """Get regularly spaced bin edges from position data.

    For each dimension, the bin edges start at the minimum coordinate and are
    spaced by *width* until the maximum coordinate is covered, so that no atom
    ends up in the overflow layer when the edges are passed to
    :func:`voxelize`.

    Parameters
    ----------
    pos : ndarray, shape (n, d)
        The *n* *d*-dimensional atomic positions.
    width : float or array_like, shape (d,)
        The bin width, either for all or for each dimension. Defaults to the
        ``voxel.width`` configuration setting.

    Returns
    -------
    bin_edges : list
        The *d* bin edge arrays, each of type *ndarray*.

    Raises
    ------
    ContractViolation
        If no or non-finite positions are given, or if the bin width is not
        positive.
    """
    #
    #
    # check input
    pos = _as_2d(pos, "Positions")
    if len(pos) == 0:
        raise ContractViolation("Cannot derive bin edges from empty data.")
    if not np.all(np.isfinite(pos)):
        raise ContractViolation("Positions must be finite.")
    #
    #
    # set bin width
    if width is None:
        width = get_setting("voxel.width")
    try:
        width = np.broadcast_to(
            np.asarray(width, dtype = np.float64), (pos.shape[1],)
        )
    except ValueError:
        raise ContractViolation(
            f"Bin width {width} does not match {pos.shape[1]} dimension(s)."
        )
    if not np.all(width > 0.0):
        raise ContractViolation(f"Bin width {width} must be positive.")
    #
    #
    # loop through dimensions
    bin_edges = []
    for d in range(pos.shape[1]):
        lo, hi = pos[:, d].min(), pos[:, d].max()
        n = max(int(np.ceil((hi - lo) / width[d])), 1)
        #
        # catch round-off for the last edge
        while lo + n * width[d] < hi:
            n += 1
        bin_edges.append(lo + width[d] * np.arange(n + 1))
        logger.debug(
            f"Dimension {d}: {n} bin(s) of width {width[d]} starting at {lo}."
        )
    #
    #
    return bin_edges
#
#
#
#
def materialize(grid, pos):
    """Replace atom indices by atomic positions.

    Parameters
    ----------
    grid : VoxelGrid
        The grid of atom indices, as obtained from :func:`accumulate`.
    pos : ndarray, shape (n, m)
        The *n* *m*-dimensional atomic positions. One-dimensional input is
        treated as *shape (n, 1)*.

    Returns
    -------
    grid_pos : VoxelGrid
        The grid of atomic positions, each voxel holding an *ndarray* of
        *shape (j, m)* for its *j* atoms (in the order of *grid*).

    Raises
    ------
    ContractViolation
        If *pos* does not cover all atom indices of *grid*.
    """
    #
    #
    pos = _as_2d(pos, "Positions")
    max_id = max((ids.max() for ids in grid.cells.flat if len(ids) > 0),
                 default = -1)
    if max_id >= len(pos):
        raise ContractViolation(
            f"Atom index {max_id} exceeds number of positions ({len(pos)})."
        )
    #
    cells = np.empty(grid.size, dtype = object)
    for i, ids in enumerate(grid.cells.flat):
        cells[i] = pos[ids]
    #
    #
    return VoxelGrid(cells.reshape(grid.shape), grid.nominal_bins)
#
#
#
#
def voxelize(pos, distance, bin_edges, **kwargs):
    """Distribute atoms into voxels.

    Parameters
    ----------
    pos : ndarray, shape (n, m)
        The *n* *m*-dimensional atomic positions.
    distance : ndarray, shape (n, d)
        The *n* *d*-dimensional feature vectors used for binning. Typically,
        these are the atomic positions themselves, but any per-atom quantity may
        be used. One-dimensional input is treated as *shape (n, 1)*.
    bin_edges : list
        The *d* strictly increasing bin edge arrays, one per feature dimension.
        A single one-dimensional *ndarray* is treated as a list of length one.

    Keyword Arguments
    -----------------
    ids : bool
        Whether to return the grid of atom indices instead of atomic positions.
        Default: ``False``.
    mem_threshold : float
        The fraction of available memory above which the allocation of the
        dense grid triggers a warning (see :func:`accumulate`).
        Default: ``0.5``.

    Returns
    -------
    grid : VoxelGrid
        The grid of voxels, each holding the atomic positions (or indices) of
        the atoms it contains.

    Raises
    ------
    ContractViolation
        If the number of positions and feature vectors differ, if the feature
        dimension does not match the number of bin edge sets, or if any bin edge
        set is invalid.
    """
    #
    #
    # check input
    pos      = _as_2d(pos, "Positions")
    distance = _as_2d(distance, "Feature vectors")
    if len(pos) != len(distance):
        raise ContractViolation(
            f"Number of positions ({len(pos)}) does not match number of feature "
            f"vectors ({len(distance)})."
        )
    if isinstance(bin_edges, np.ndarray) and bin_edges.ndim == 1:
        bin_edges = [bin_edges]
    if len(bin_edges) == 0 or distance.shape[1] != len(bin_edges):
        raise ContractViolation(
            f"Feature dimension ({distance.shape[1]}) does not match number of "
            f"bin edge sets ({len(bin_edges)})."
        )
    bin_edges = [_check_edges(e, d) for d, e in enumerate(bin_edges)]
    #
    #
    # calculate bin association for every dimension
    loc = np.column_stack([
        __digitize(
            np.ascontiguousarray(distance[:, d], dtype = np.float64), edges
        ) for d, edges in enumerate(bin_edges)
    ])
    n_overflow = np.count_nonzero(np.any(loc == _overflow, axis = 1))
    if n_overflow > 0:
        logger.debug(f"{n_overflow} atom(s) outside of bin edges.")
    #
    #
    # distribute atoms into voxels
    grid = accumulate(
        loc, [len(edges) - 1 for edges in bin_edges],
        mem_threshold = kwargs.get('mem_threshold', _mem_threshold)
    )
    if kwargs.get('ids', False):
        return grid
    return materialize(grid, pos)
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
@numba.njit('i8[:](f8[:], f8[:])', parallel = True)
def __digitize(values, edges):
    """Map values to bin indices (compiled kernel).

    Parameters
    ----------
    values : ndarray, shape (n,)
        The values to be digitized.
    edges : ndarray, shape (k,)
        The strictly increasing bin edges.

    Returns
    -------
    idx : ndarray, shape (n,)
        The bin indices.
    """
    #
    #
    k   = len(edges)
    idx = np.zeros(len(values), dtype = np.int64)
    for i in numba.prange(len(values)):
        v = values[i]
        # out of range (or nan) keeps overflow index
        if not (edges[0] <= v and v <= edges[k - 1]):
            idx[i] = 0
        # last edge is inclusive
        elif v == edges[k - 1]:
            idx[i] = k - 1
        else:
            # bisection with edges[lo] <= v < edges[hi]
            lo = 0
            hi = k - 1
            while hi - lo > 1:
                mid = (lo + hi) // 2
                if edges[mid] <= v:
                    lo = mid
                else:
                    hi = mid
            idx[i] = lo + 1
    return idx
#
#
#
#
def _as_2d(data, name):
    """Convert input data to two-dimensional array.

    Parameters
    ----------
    data : array_like, shape (n,) or (n, d)
        The input data.
    name : str
        The name of the input data used in error messages.

    Returns
    -------
    data : ndarray, shape (n, d)
        The input data, with one-dimensional input reshaped to *(n, 1)*.
    """
    #
    #
    data = np.asarray(data)
    if data.ndim == 1:
        data = data.reshape(-1, 1)
    if data.ndim != 2:
        raise ContractViolation(
            f"{name} must be one- or two-dimensional (got shape {data.shape})."
        )
    return data
#
#
#
#
def _check_edges(edges, dim = None):
    """Check bin edges for validity.

    Parameters
    ----------
    edges : array_like, shape (k,)
        The bin edges.
    dim : int
        The dimension of the bin edges (only used in error messages).

    Returns
    -------
    edges : ndarray, shape (k,)
        The contiguous bin edges of type *float64*.
    """
    #
    #
    where = "" if dim is None else f" for dimension {dim}"
    try:
        edges = np.ascontiguousarray(edges, dtype = np.float64)
    except (TypeError, ValueError):
        raise ContractViolation(f"Invalid bin edges{where}.")
    if edges.ndim != 1 or len(edges) < 2:
        raise ContractViolation(
            f"At least two bin edges required{where} (got shape "
            f"{edges.shape})."
        )
    if not np.all(np.isfinite(edges)):
        raise ContractViolation(f"Bin edges{where} must be finite.")
    if np.any(np.diff(edges) <= 0.0):
        raise ContractViolation(
            f"Bin edges{where} must be strictly increasing."
        )
    return edges
#
#
#
#
def _check_memory(n_cells, threshold):
    """Warn if a dense voxel grid approaches the available memory.

    Parameters
    ----------
    n_cells : int
        The total number of voxels of the grid.
    threshold : float
        The fraction of available memory triggering the warning.
    """
    #
    #
    # pointer plus empty index array per voxel
    mem_required  = n_cells * (8 + getsizeof(np.empty(0, dtype = _id_dtype)))
    mem_available = virtual_memory().available
    #
    if mem_required > threshold * mem_available:
        warnings.warn(
            "Voxel grid with {0:d} voxels requires approximately {1:.1f} GiB "
            "of memory ({2:.1f} GiB available).".format(
                n_cells, mem_required / 2**30, mem_available / 2**30)
        )
