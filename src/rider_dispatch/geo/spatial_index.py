"""H3 cell helpers used to prefilter riders before exact distance checks."""

import math

import h3

from .distance import Coordinates

# Beyond this many rings the IN-list gets larger than scanning the eligible set
MAX_COVERING_RINGS = 25


def cell_for(point: Coordinates, resolution: int) -> str:
    return h3.latlng_to_cell(point.lat, point.lng, resolution)


def rings_for_radius(radius_km: float, resolution: int) -> int:
    """Number of grid_disk rings whose union contains the whole search disk.

    Adjacent cell centers are at least one average edge length apart even for
    the smallest cells at a resolution, so counting rings in edge lengths and
    adding a ring for the center cell's own extent (plus one for distortion)
    never undercovers.
    """
    edge_km = h3.average_hexagon_edge_length(resolution, unit="km")
    return max(1, math.ceil(radius_km / edge_km) + 2)


def covering_cells(
    center: Coordinates,
    radius_km: float,
    resolution: int,
) -> set[str] | None:
    """Cells that together cover every point within radius_km of center.

    Returns None when the covering would be too large to be a useful filter;
    callers should then fall back to an unfiltered eligible scan.
    """
    k = rings_for_radius(radius_km, resolution)
    if k > MAX_COVERING_RINGS:
        return None
    return set(h3.grid_disk(cell_for(center, resolution), k))
