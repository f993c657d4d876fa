"""Skeleton graph with node snapping."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from roofengine.contract import EPSILON_MM
from roofengine.geometry.primitives import Vec2


class NodeKind(str, Enum):
    EAVE = "eave"
    ORDINARY = "ordinary"
    PEAK = "peak"
    SPLIT = "split"


class ArcKind(str, Enum):
    RIDGE = "ridge"
    HIP = "hip"
    VALLEY = "valley"
    RAKE = "rake"


@dataclass
class SkeletonNode:
    """Graph node; ``t`` is the rise above the eave at which the wavefront reached it."""
    id: int
    x: float
    y: float
    t: float
    kind: NodeKind = NodeKind.ORDINARY

    @property
    def position(self) -> Vec2:
        return (self.x, self.y)


@dataclass
class SkeletonEdge:
    """Arc traced by one wavefront vertex (or a ridge between two collapsed fronts).

    ``faces`` holds the indices of the two footprint edges whose planes meet
    along the arc; ``reflex`` is set when the tracing vertex was a reflex corner.
    """
    id: int
    start: int
    end: int
    faces: Tuple[int, int]
    reflex: bool = False
    kind: Optional[ArcKind] = None


@dataclass
class SkeletonGraph:
    """Skeleton nodes and arcs of one footprint.

    Nodes closer than ``snap_tolerance`` in plan and in rise share an id.
    Eave node ``i`` is the footprint vertex ``i``.
    """
    snap_tolerance: float = 10 * EPSILON_MM
    nodes: Dict[int, SkeletonNode] = field(default_factory=dict)
    arcs: List[SkeletonEdge] = field(default_factory=list)
    eave_nodes: List[int] = field(default_factory=list)
    _arc_keys: Set[frozenset] = field(default_factory=set, repr=False)

    def add_node(self, pos: Vec2, t: float, kind: NodeKind = NodeKind.ORDINARY) -> int:
        """Find or create the node at ``pos`` reached at rise ``t``.

        Matching needs both the plan position and the rise: the top of a gable
        wall sits above its eave corner.
        """
        for node_id, node in self.nodes.items():
            if abs(node.t - t) > self.snap_tolerance:
                continue
            if math.hypot(node.x - pos[0], node.y - pos[1]) <= self.snap_tolerance:
                if kind in (NodeKind.PEAK, NodeKind.SPLIT) and node.kind == NodeKind.ORDINARY:
                    node.kind = kind
                return node_id

        node_id = len(self.nodes)
        self.nodes[node_id] = SkeletonNode(id=node_id, x=float(pos[0]), y=float(pos[1]), t=float(t), kind=kind)
        return node_id

    def add_eave_vertex(self, pos: Vec2) -> int:
        node_id = self.add_node(pos, 0.0, NodeKind.EAVE)
        self.eave_nodes.append(node_id)
        return node_id

    def add_arc(self, start: int, end: int, faces: Tuple[int, int], reflex: bool = False) -> Optional[SkeletonEdge]:
        """Register an arc; repeated arcs and arcs without plan length are ignored."""
        if start == end:
            return None
        a, b = self.nodes[start], self.nodes[end]
        if math.hypot(a.x - b.x, a.y - b.y) <= self.snap_tolerance:
            return None
        key = frozenset((start, end))
        if key in self._arc_keys:
            return None
        self._arc_keys.add(key)
        arc = SkeletonEdge(id=len(self.arcs), start=start, end=end, faces=faces, reflex=reflex)
        self.arcs.append(arc)
        return arc

    def arcs_of_face(self, face: int) -> List[SkeletonEdge]:
        return [a for a in self.arcs if face in a.faces]

    def incident_faces(self) -> Dict[int, Set[int]]:
        """Footprint edge indices touching each node."""
        faces: Dict[int, Set[int]] = {node_id: set() for node_id in self.nodes}
        n = len(self.eave_nodes)
        for i, node_id in enumerate(self.eave_nodes):
            faces[node_id].update((i, (i - 1) % n))
        for arc in self.arcs:
            faces[arc.start].update(arc.faces)
            faces[arc.end].update(arc.faces)
        return faces

    def max_rise(self) -> float:
        return max((node.t for node in self.nodes.values()), default=0.0)
