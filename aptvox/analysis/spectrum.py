"""
The aptvox spectrum range module
================================

This module provides the bookkeeping for *ranges* in a mass spectrum, i.e. the
mass-to-charge intervals which are assigned to a specific ion (or to the
background) during ranging. Only fixed-width ranges are supported: A range is
defined by its center and a constant width (in amu/e), either from a single
position, e.g. obtained from user interaction, or from a pair of limits, whose
mean is then used as the range center.

Ranges must not overlap. Before a new range is added, it is checked against all
existing ranges:

- A new range lying completely within an existing range is rejected.
- A new range completely covering an existing range is rejected.
- A new range partially overlapping an existing range is clipped, such that it
  ends one histogram bin before the existing range begins, or starts one
  histogram bin after the existing range ends.

Plotting, interactive selection of the range center, assignment of colors and
ion names, and labeling are not part of this module.


List of classes
---------------

* :class:`RangeOverlapError`: Invalid or overlapping range.


List of functions
-----------------

* :func:`add_range`: Add fixed-width range to list of existing ranges.
* :func:`get_range`: Get histogram data within range.
* :func:`get_range_limits`: Get limits of fixed-width range.
* :func:`in_range`: Check which values lie within range.
* :func:`resolve_overlap`: Resolve overlap of new range with existing ranges.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'RangeOverlapError',
    'add_range',
    'get_range',
    'get_range_limits',
    'in_range',
    'resolve_overlap'
]
#
#
#
#
# import modules
import logging
import numpy as np
import warnings
#
# import some special functions
from aptvox.io.config import get_setting
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
# public classes
#
################################################################################
class RangeOverlapError(ValueError):
    """Invalid range, or range which cannot be reconciled with existing
    ranges."""
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def add_range(ranges, center, bin_width, width = None):
    """Add fixed-width range to list of existing ranges.

    Parameters
    ----------
    ranges : list
        The existing ranges, each of type *tuple* of length 2 specifying the
        respective lower and upper limit. The list is not modified.
    center : float or tuple
        The center of the new range, or its limits (of which the mean is used
        as the center).
    bin_width : float
        The histogram bin width of the mass spectrum, used as separation when a
        partially overlapping range is clipped.
    width : float
        The width of the new range. Defaults to the ``ranges.width``
        configuration setting.

    Returns
    -------
    ranges_new : list
        The ranges including the new one, sorted by their lower limit.

    Raises
    ------
    RangeOverlapError
        If the new range cannot be added.
    """
    #
    #
    limits = resolve_overlap(get_range_limits(center, width), ranges, bin_width)
    logger.info(
        "Adding range ({0:.3f}, {1:.3f}) amu/e.".format(*limits)
    )
    return sorted([tuple(float(l) for l in r) for r in ranges] + [limits])
#
#
#
#
def get_range(centers, counts, limits):
    """Get histogram data within range.

    Parameters
    ----------
    centers : ndarray, shape (n,)
        The bin centers of the mass spectrum.
    counts : ndarray, shape (n,)
        The corresponding histogram counts.
    limits : tuple
        The lower and upper limit of the range.

    Returns
    -------
    (centers_r, counts_r) : tuple
        The bin centers and counts within the range, each of type *ndarray*.
    """
    #
    #
    centers = np.asarray(centers)
    counts  = np.asarray(counts)
    if centers.shape != counts.shape:
        raise ValueError(
            "Shape of bin centers {0:s} does not match shape of counts "
            "{1:s}.".format(str(centers.shape), str(counts.shape))
        )
    #
    is_in = in_range(centers, limits)
    return centers[is_in], counts[is_in]
#
#
#
#
def get_range_limits(center, width = None):
    """Get limits of fixed-width range.

    Parameters
    ----------
    center : float or tuple
        The center of the range, or a pair of limits whose mean is used as the
        center.
    width : float
        The width of the range. Defaults to the ``ranges.width`` configuration
        setting.

    Returns
    -------
    limits : tuple
        The lower and upper limit of the range, each of type *float*.
    """
    #
    #
    if width is None:
        width = get_setting("ranges.width")
    if not width > 0.0:
        raise RangeOverlapError(
            "Range width ({0:.3f}) must be positive.".format(width)
        )
    #
    #
    center = float(np.mean(center))
    return (center - width / 2, center + width / 2)
#
#
#
#
def in_range(x, limits):
    """Check which values lie within range.

    Values equal to one of the limits are considered to lie outside the range.

    Parameters
    ----------
    x : float or ndarray
        The values to check.
    limits : tuple
        The lower and upper limit of the range.

    Returns
    -------
    mask : bool or ndarray
        Whether the values lie within the range.
    """
    #
    #
    x = np.asarray(x)
    return (limits[0] < x) & (x < limits[1])
#
#
#
#
def resolve_overlap(limits, existing, bin_width):
    """Resolve overlap of new range with existing ranges.

    The existing ranges are checked in order. A partially overlapping range is
    clipped and the clipped range is checked against the subsequent ranges.

    Parameters
    ----------
    limits : tuple
        The lower and upper limit of the new range.
    existing : list
        The existing ranges, each of type *tuple* of length 2.
    bin_width : float
        The histogram bin width of the mass spectrum.

    Returns
    -------
    limits : tuple
        The (possibly clipped) limits of the new range.

    Raises
    ------
    RangeOverlapError
        If the new range lies within or covers an existing range, or if no
        valid range remains after clipping.
    """
    #
    #
    lower, upper = sorted(float(l) for l in limits)
    #
    #
    # loop through existing ranges
    for r in existing:
        r_min, r_max = min(r), max(r)
        if lower >= r_min and upper <= r_max:
            raise RangeOverlapError(
                "Total overlap with existing range ({0:.3f}, {1:.3f}) "
                "amu/e.".format(r_min, r_max)
            )
        elif lower <= r_min and upper >= r_max:
            raise RangeOverlapError(
                "New range completely covers existing range ({0:.3f}, "
                "{1:.3f}) amu/e.".format(r_min, r_max)
            )
        elif lower < r_max and upper > r_max:
            lower = r_max + bin_width
            _warn_clip(lower, upper)
        elif lower < r_min and upper > r_min:
            upper = r_min - bin_width
            _warn_clip(lower, upper)
    #
    #
    if lower >= upper:
        raise RangeOverlapError("Invalid range width or overlap.")
    return (lower, upper)
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
def _warn_clip(lower, upper):
    warnings.warn("Partial overlap: new range was clipped.")
    logger.info(
        "Clipped new range to ({0:.3f}, {1:.3f}) amu/e.".format(lower, upper)
    )
