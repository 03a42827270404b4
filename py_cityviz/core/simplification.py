"""
Polygon simplification and small polygon helpers.

Shared by everything that turns way geometry into shapes: building bases,
land-use areas and lakes are simplified before meshing.
"""

from typing import List, Sequence, Tuple

Point = Tuple[float, float]


def triangle_area(previous_point: Point, current_point: Point, next_point: Point) -> float:
    """Unsigned area of the triangle spanned by three points."""
    return 0.5 * abs(
        previous_point[0] * (current_point[1] - next_point[1])
        + current_point[0] * (next_point[1] - previous_point[1])
        + next_point[0] * (previous_point[1] - current_point[1])
    )


def _area_at(polygon: Sequence[Point], i: int) -> float:
    n = len(polygon)
    return triangle_area(polygon[(i + n - 1) % n], polygon[i], polygon[(i + 1) % n])


def simplify_polygon(polygon: Sequence[Point], threshold: float) -> List[Point]:
    """
    Simplify a closed polygon with Visvalingam–Whyatt.

    Each vertex is weighted by the area of the triangle it forms with its
    two (cyclic) neighbours. The vertex with the smallest area is removed
    as long as that area is below ``threshold`` and more than 4 vertices
    remain, so a threshold of 0 keeps every vertex. After a removal only
    the two neighbouring areas change.

    Ties go to the lowest index. Polygons with fewer than 4 points are
    returned unchanged.

    Args:
        polygon: Ordered, cyclic list of points
        threshold: Triangle areas below this may be removed

    Returns:
        New list with the remaining points in their original order
    """
    polygon = list(polygon)
    if len(polygon) < 4:
        return polygon

    areas = [_area_at(polygon, i) for i in range(len(polygon))]

    while len(polygon) > 4:
        min_area = float("inf")
        min_index = 0
        for i, area in enumerate(areas):
            if area < min_area:
                min_area = area
                min_index = i

        # A vertex whose area equals the threshold is kept, so a threshold
        # of 0 never removes colinear points
        if min_area >= threshold:
            break

        del polygon[min_index]
        del areas[min_index]

        n = len(polygon)
        previous_index = (min_index + n - 1) % n
        next_index = min_index % n
        areas[previous_index] = _area_at(polygon, previous_index)
        areas[next_index] = _area_at(polygon, next_index)

    return polygon


def polygon_area(polygon: Sequence[Point]) -> float:
    """Signed shoelace area; positive for counter-clockwise rings."""
    area = 0.0
    n = len(polygon)
    for i in range(n):
        j = (i + 1) % n
        area += polygon[i][0] * polygon[j][1]
        area -= polygon[j][0] * polygon[i][1]
    return area / 2.0


def point_in_polygon(polygon: Sequence[Point], point: Point) -> bool:
    """Even-odd ray casting test."""
    inside = False
    n = len(polygon)
    px, py = point
    for i in range(n):
        xi, yi = polygon[i]
        xj, yj = polygon[(i + 1) % n]
        if (yi > py) != (yj > py) and px < (xj - xi) * (py - yi) / (yj - yi) + xi:
            inside = not inside
    return inside


def counterclockwise(polygon: Sequence[Point]) -> List[Point]:
    """Return the ring in counter-clockwise order, reversing it if needed."""
    total = 0.0
    n = len(polygon)
    for i in range(n):
        x1, y1 = polygon[i]
        x2, y2 = polygon[(i + 1) % n]
        total += (x2 - x1) * (y2 + y1)

    ring = list(polygon)
    if total > 0.0:
        ring.reverse()
    return ring
