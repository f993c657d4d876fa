"""Roof face tracing and reconciliation."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Sequence

from loguru import logger

from roofengine.contract import MIN_FACE_AREA_MM2
from roofengine.exceptions import SkeletonInconsistent
from roofengine.geometry import polygon_ops
from roofengine.geometry.primitives import Vec2, signed_area
from roofengine.skeleton.graph import SkeletonGraph


@dataclass
class TracedFace:
    """Face of one roofed eave edge: the eave edge closed by skeleton arcs."""
    edge_index: int
    ring: List[Vec2]

    @property
    def area(self) -> float:
        return signed_area(self.ring)


def trace_faces(graph: SkeletonGraph, polygon: Sequence[Vec2], roofed: Sequence[bool]) -> List[TracedFace]:
    """Walk the boundary of every roofed edge's face.

    The face of edge ``i`` starts with the eave from vertex ``i`` to vertex
    ``i + 1`` and returns to vertex ``i`` along the arcs tagged with face
    ``i``; every node on the way must have exactly two such arcs.

    Raises:
        SkeletonInconsistent: a face boundary is open, branches or winds clockwise.
    """
    n = len(polygon)
    faces: List[TracedFace] = []
    for i in range(n):
        if not roofed[i]:
            continue
        start = graph.eave_nodes[i]
        end = graph.eave_nodes[(i + 1) % n]

        adjacency: Dict[int, List[int]] = defaultdict(list)
        arcs = graph.arcs_of_face(i)
        for arc in arcs:
            adjacency[arc.start].append(arc.end)
            adjacency[arc.end].append(arc.start)

        for node_id, neighbours in adjacency.items():
            expected = 1 if node_id in (start, end) else 2
            if len(neighbours) != expected:
                raise SkeletonInconsistent(
                    f"Face of edge {i} branches at node {node_id}",
                    {"edge": str(i), "node": str(node_id), "degree": str(len(neighbours))},
                )

        path = [start, end]
        prev, cur = start, end
        for _ in range(len(arcs)):
            if cur == start:
                break
            options = [k for k in adjacency.get(cur, []) if k != prev]
            if not options:
                raise SkeletonInconsistent(f"Face of edge {i} is open at node {cur}", {"edge": str(i)})
            prev, cur = cur, options[0]
            if cur != start:
                path.append(cur)
        if cur != start or len(path) - 1 != len(arcs):
            raise SkeletonInconsistent(f"Face of edge {i} does not close", {"edge": str(i), "arcs": str(len(arcs))})

        ring = [graph.nodes[k].position for k in path]
        face = TracedFace(edge_index=i, ring=ring)
        if face.area <= 0.0:
            raise SkeletonInconsistent(
                f"Face of edge {i} has inconsistent winding",
                {"edge": str(i), "area": f"{face.area:.3f}"},
            )
        faces.append(face)
    return faces


def reconcile_faces(faces: Sequence[TracedFace], eave_polygon: Sequence[Vec2]) -> List[TracedFace]:
    """Clip faces to the eave polygon and to each other so they tile it exactly.

    Faces are taken in edge order; each keeps only the area not claimed by
    an earlier one. Parts smaller than ``MIN_FACE_AREA_MM2`` are dropped.
    """
    accepted: List[List[Vec2]] = []
    result: List[TracedFace] = []
    for face in faces:
        clipped = polygon_ops.intersection([face.ring], [eave_polygon])
        if accepted:
            clipped = polygon_ops.difference(clipped, accepted)
        for ring in clipped:
            area = signed_area(ring)
            if area < MIN_FACE_AREA_MM2:
                logger.warning(f"Dropping {area:.3f} mm² sliver of face {face.edge_index}")
                continue
            result.append(TracedFace(edge_index=face.edge_index, ring=ring))
            accepted.append(ring)
    return result
