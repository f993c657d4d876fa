"""
Weighted straight skeleton by event-driven wavefront propagation.

Every footprint edge is a wavefront line ``n . x = c + w * t`` where ``n`` is
the inward unit normal, ``t`` the rise above the eave and ``w`` the plan
distance travelled per unit rise (``1 / tan(pitch)``; ``0`` for a gable
edge, which never moves). Wavefront vertices are kinetic points at the
intersection of their two lines. Vertices are never mutated: every event
deactivates the vertices it consumes and creates new ones, so a queued event
stays valid as long as the vertices it names are still active.

Events, in increasing ``t``:

* edge event: an active edge shrinks to zero length; its two end vertices
  merge into one vertex between the neighbouring edges (or into a peak when
  the front is a triangle).
* split event: a reflex vertex reaches the interior of an edge of its own
  front; the front splits in two. Hitting an end vertex of that edge is a
  vertex event and splits the front the same way.
* ridge: a merged vertex whose two edges are antiparallel lines that now
  coincide. The run between the vertex and its nearer neighbour is a
  horizontal ridge and the front closes over it.
"""

from __future__ import annotations

import heapq
import itertools
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from loguru import logger

from roofengine.contract import EVENT_BUDGET_FACTOR, EVENT_BUDGET_SLACK, PARALLEL_TOLERANCE
from roofengine.exceptions import SkeletonInconsistent
from roofengine.geometry.primitives import Vec2, cross, distance, dot, normalize, perp_left, sub
from roofengine.skeleton.graph import NodeKind, SkeletonGraph

EDGE_EVENT = 0
SPLIT_EVENT = 1


@dataclass(frozen=True)
class WavefrontEdge:
    """Footprint edge with its propagation weight."""
    index: int
    start: Vec2
    end: Vec2
    weight: float

    @property
    def direction(self) -> Vec2:
        return normalize(sub(self.end, self.start))

    @property
    def normal(self) -> Vec2:
        return perp_left(self.direction)

    @property
    def offset(self) -> float:
        return dot(self.normal, self.start)

    @property
    def stationary(self) -> bool:
        return self.weight == 0.0

    def line_at(self, t: float) -> float:
        return self.offset + self.weight * t

    def distance_at(self, p: Vec2, t: float) -> float:
        """Signed distance of ``p`` inside the front line at time ``t``."""
        return dot(self.normal, p) - self.line_at(t)


def edge_weight(pitch_deg: float, stationary: bool) -> float:
    if stationary:
        return 0.0
    return 1.0 / math.tan(math.radians(pitch_deg))


class _Vertex:
    __slots__ = ("id", "p0", "t0", "vel", "edge_prev", "edge_next", "prev", "next", "active", "reflex", "node")

    def __init__(self, vid: int, p0: Vec2, t0: float, edge_prev: WavefrontEdge, edge_next: WavefrontEdge, node: int):
        self.id = vid
        self.p0 = p0
        self.t0 = t0
        self.edge_prev = edge_prev
        self.edge_next = edge_next
        self.vel = _velocity(edge_prev, edge_next)
        self.reflex = cross(edge_prev.direction, edge_next.direction) < -PARALLEL_TOLERANCE
        self.prev: Optional[_Vertex] = None
        self.next: Optional[_Vertex] = None
        self.active = True
        self.node = node

    @property
    def spike(self) -> bool:
        return self.vel is None

    def at(self, t: float) -> Vec2:
        if self.vel is None:
            return self.p0
        dt = t - self.t0
        return (self.p0[0] + self.vel[0] * dt, self.p0[1] + self.vel[1] * dt)

    def faces(self) -> Tuple[int, int]:
        return (self.edge_prev.index, self.edge_next.index)

    def __repr__(self) -> str:
        return f"_Vertex({self.id}, e{self.edge_prev.index}/e{self.edge_next.index}, p0={self.p0}, t0={self.t0:.3f})"


def _velocity(a: WavefrontEdge, b: WavefrontEdge) -> Optional[Vec2]:
    """Velocity keeping a point on both moving lines; None for antiparallel lines."""
    na, nb = a.normal, b.normal
    det = cross(na, nb)
    if abs(det) > PARALLEL_TOLERANCE:
        return (
            (a.weight * nb[1] - b.weight * na[1]) / det,
            (na[0] * b.weight - nb[0] * a.weight) / det,
        )
    if dot(na, nb) > 0.0:
        # collinear continuation
        w = (a.weight + b.weight) / 2.0
        return (na[0] * w, na[1] * w)
    return None


def _ring(v: _Vertex) -> List[_Vertex]:
    ring = [v]
    cur = v.next
    while cur is not v:
        ring.append(cur)
        cur = cur.next
    return ring


def _ring_size(v: _Vertex, limit: int) -> int:
    count = 1
    cur = v.next
    while cur is not v and count < limit:
        count += 1
        cur = cur.next
    return count


class WavefrontSolver:
    """Straight-skeleton solver for one counter-clockwise ring."""

    def __init__(
        self,
        polygon: Sequence[Vec2],
        edges: Sequence[WavefrontEdge],
        event_budget_factor: int = EVENT_BUDGET_FACTOR,
    ):
        if len(polygon) != len(edges):
            raise ValueError("one wavefront edge per polygon edge required")
        self.polygon = [tuple(p) for p in polygon]
        self.edges = list(edges)
        self.graph = SkeletonGraph()
        self.budget = event_budget_factor * len(polygon) + EVENT_BUDGET_SLACK
        self.tolerance = self.graph.snap_tolerance
        self._queue: List[tuple] = []
        self._seq = itertools.count()
        self._ids = itertools.count()
        self._vertices: List[_Vertex] = []
        self.now = 0.0
        self.processed = 0

    # ------------------------------------------------------------------ setup

    def _new_vertex(self, p: Vec2, t: float, edge_prev: WavefrontEdge, edge_next: WavefrontEdge, node: int) -> _Vertex:
        v = _Vertex(next(self._ids), p, t, edge_prev, edge_next, node)
        self._vertices.append(v)
        return v

    def _initial_front(self) -> List[_Vertex]:
        n = len(self.polygon)
        verts = []
        for i, p in enumerate(self.polygon):
            node = self.graph.add_eave_vertex(p)
            verts.append(self._new_vertex(p, 0.0, self.edges[i - 1], self.edges[i], node))
        for i, v in enumerate(verts):
            v.prev = verts[i - 1]
            v.next = verts[(i + 1) % n]
        return verts

    # ------------------------------------------------------------- scheduling

    def _push(self, t: float, kind: int, payload: tuple) -> None:
        if t < self.now:
            if t < self.now - self.tolerance:
                return
            t = self.now
        heapq.heappush(self._queue, (t, kind, next(self._seq), payload))

    def _schedule_edge(self, a: _Vertex) -> None:
        """Queue the collapse of the edge running from ``a`` to ``a.next``."""
        b = a.next
        e = a.edge_next
        if a.spike or b.spike:
            return
        d = e.direction
        length_now = dot(d, sub(b.at(self.now), a.at(self.now)))
        rate = dot(d, sub(b.vel, a.vel))
        if length_now <= self.tolerance:
            if rate <= PARALLEL_TOLERANCE:
                self._push(self.now, EDGE_EVENT, (a, b))
            return
        if rate >= -PARALLEL_TOLERANCE:
            return
        self._push(self.now - length_now / rate, EDGE_EVENT, (a, b))

    def _schedule_splits(self, v: _Vertex) -> None:
        if not v.reflex or v.spike:
            return
        pos = v.at(self.now)
        seen = set()
        for other in _ring(v):
            e = other.edge_next
            if e.index in seen or e is v.edge_prev or e is v.edge_next:
                continue
            seen.add(e.index)
            closing = e.weight - dot(e.normal, v.vel)
            if closing <= PARALLEL_TOLERANCE:
                continue
            gap = e.distance_at(pos, self.now)
            if gap < -self.tolerance:
                continue
            self._push(self.now + max(gap, 0.0) / closing, SPLIT_EVENT, (v, e))

    def _schedule(self, v: _Vertex) -> None:
        self._schedule_edge(v.prev)
        self._schedule_edge(v)
        self._schedule_splits(v)

    # ----------------------------------------------------------------- arcs

    def _trace(self, v: _Vertex, node: int) -> None:
        self.graph.add_arc(v.node, node, v.faces(), v.reflex)

    def _retire(self, *verts: _Vertex) -> None:
        for v in verts:
            v.active = False

    # ------------------------------------------------------------- insertion

    def _link(self, v: _Vertex, prev: _Vertex, nxt: _Vertex) -> None:
        v.prev = prev
        v.next = nxt
        prev.next = v
        nxt.prev = v

    def _settle(self, v: _Vertex) -> None:
        """Resolve ridges and tiny fronts around a freshly linked vertex, then queue its events."""
        while v is not None and v.spike:
            v = self._close_ridge(v)
        if v is None:
            return
        if _ring_size(v, 3) < 3:
            self._finish_small_front(v)
            return
        self._schedule(v)

    def _close_ridge(self, x: _Vertex) -> Optional[_Vertex]:
        """Close the zero-width run between two coincident antiparallel edges at ``x``."""
        t = self.now
        p, n = x.prev, x.next
        if p is n:
            self._finish_small_front(x)
            return None
        xp = x.p0
        pp, pn = p.at(t), n.at(t)
        dp, dn = distance(xp, pp), distance(xp, pn)

        if abs(dp - dn) <= self.tolerance:
            target = ((pp[0] + pn[0]) / 2.0, (pp[1] + pn[1]) / 2.0)
            closes = p.prev is n
            node = self.graph.add_node(target, t, NodeKind.PEAK if closes else NodeKind.ORDINARY)
            self.graph.add_arc(x.node, node, x.faces())
            self._trace(p, node)
            self._trace(n, node)
            self._retire(x, p, n)
            if closes:
                return None
            z = self._new_vertex(target, t, p.edge_prev, n.edge_next, node)
            self._link(z, p.prev, n.next)
            logger.debug(f"Ridge closed at t={t:.3f} between {p} and {n}")
            return z

        if dp < dn:
            node = self.graph.add_node(pp, t)
            self.graph.add_arc(x.node, node, x.faces())
            self._trace(p, node)
            self._retire(x, p)
            z = self._new_vertex(pp, t, p.edge_prev, x.edge_next, node)
            self._link(z, p.prev, n)
        else:
            node = self.graph.add_node(pn, t)
            self.graph.add_arc(x.node, node, x.faces())
            self._trace(n, node)
            self._retire(x, n)
            z = self._new_vertex(pn, t, x.edge_prev, n.edge_next, node)
            self._link(z, p, n.next)
        return z

    def _finish_small_front(self, v: _Vertex) -> None:
        """A front of one or two vertices has no area left; trace it to its end."""
        t = self.now
        if v.next is v:
            node = self.graph.add_node(v.at(t), t)
            self._trace(v, node)
            self._retire(v)
            return
        u, w = v, v.next
        nu = self.graph.add_node(u.at(t), t)
        nw = self.graph.add_node(w.at(t), t)
        self._trace(u, nu)
        self._trace(w, nw)
        self.graph.add_arc(nu, nw, u.faces())
        self._retire(u, w)

    # ---------------------------------------------------------------- events

    def _edge_event(self, a: _Vertex, b: _Vertex) -> None:
        t = self.now
        pa, pb = a.at(t), b.at(t)
        q = ((pa[0] + pb[0]) / 2.0, (pa[1] + pb[1]) / 2.0)
        c = a.prev
        if c is b.next and distance(c.at(t), q) <= self.tolerance:
            node = self.graph.add_node(q, t, NodeKind.PEAK)
            for v in (a, b, c):
                self._trace(v, node)
            self._retire(a, b, c)
            logger.debug(f"Peak at t={t:.3f} ({q[0]:.1f}, {q[1]:.1f})")
            return

        node = self.graph.add_node(q, t)
        self._trace(a, node)
        self._trace(b, node)
        self._retire(a, b)
        x = self._new_vertex(q, t, a.edge_prev, b.edge_next, node)
        self._link(x, a.prev, b.next)
        self._settle(x)

    def _split_event(self, v: _Vertex, e: WavefrontEdge) -> bool:
        t = self.now
        h = v.at(t)
        d = e.direction
        for y in _ring(v):
            if y.edge_next is not e:
                continue
            yn = y.next
            if y is v or yn is v:
                continue
            s_start = dot(d, y.at(t))
            s_end = dot(d, yn.at(t))
            s_hit = dot(d, h)
            if s_hit < s_start - self.tolerance or s_hit > s_end + self.tolerance:
                continue
            if abs(e.distance_at(h, t)) > self.tolerance:
                continue
            if s_hit - s_start <= self.tolerance:
                return self._vertex_event(v, y, h)
            if s_end - s_hit <= self.tolerance:
                return self._vertex_event(v, yn, h)

            node = self.graph.add_node(h, t, NodeKind.SPLIT)
            self._trace(v, node)
            self._retire(v)
            v1 = self._new_vertex(h, t, v.edge_prev, e, node)
            v2 = self._new_vertex(h, t, e, v.edge_next, node)
            vp, vn = v.prev, v.next
            self._link(v1, vp, yn)
            self._link(v2, y, vn)
            logger.debug(f"Split at t={t:.3f}: vertex {v.id} hits edge {e.index}")
            self._settle(v1)
            if v2.active:
                self._settle(v2)
            return True
        return False

    def _vertex_event(self, v: _Vertex, w: _Vertex, h: Vec2) -> bool:
        """Reflex vertex ``v`` meets vertex ``w`` of its own front head-on."""
        if w is v.prev or w is v.next or not w.active:
            return False
        t = self.now
        node = self.graph.add_node(h, t, NodeKind.SPLIT)
        self._trace(v, node)
        self._trace(w, node)
        self._retire(v, w)
        vp, vn, wp, wn = v.prev, v.next, w.prev, w.next
        v1 = self._new_vertex(h, t, v.edge_prev, w.edge_next, node)
        v2 = self._new_vertex(h, t, w.edge_prev, v.edge_next, node)
        self._link(v1, vp, wn)
        self._link(v2, wp, vn)
        logger.debug(f"Vertex event at t={t:.3f}: vertices {v.id} and {w.id}")
        self._settle(v1)
        if v2.active:
            self._settle(v2)
        return True

    # ------------------------------------------------------------------- run

    def solve(self) -> SkeletonGraph:
        for v in self._initial_front():
            if v.spike:
                raise SkeletonInconsistent("Footprint has a zero-width spike", {"vertex": str(v.id)})
        for v in self._vertices:
            self._schedule_edge(v)
            self._schedule_splits(v)

        while self._queue:
            t, kind, _, payload = heapq.heappop(self._queue)
            if kind == EDGE_EVENT:
                a, b = payload
                if not (a.active and b.active and a.next is b):
                    continue
                self.now = max(self.now, t)
                self._edge_event(a, b)
            else:
                v, e = payload
                if not v.active:
                    continue
                self.now = max(self.now, t)
                if not self._split_event(v, e):
                    continue

            self.processed += 1
            if self.processed > self.budget:
                raise SkeletonInconsistent(
                    f"Wavefront did not terminate within {self.budget} events",
                    {"events": str(self.processed), "vertices": str(len(self.polygon))},
                )

        leftover = [v for v in self._vertices if v.active]
        if leftover:
            raise SkeletonInconsistent(
                f"Wavefront stalled with {len(leftover)} active vertices",
                {"active": str(len(leftover)), "time": f"{self.now:.3f}"},
            )
        logger.debug(
            f"Skeleton solved: {len(self.graph.nodes)} nodes, {len(self.graph.arcs)} arcs, "
            f"{self.processed} events, max rise {self.graph.max_rise():.1f} mm"
        )
        return self.graph


def build_wavefront_edges(
    polygon: Sequence[Vec2],
    pitches: Sequence[float],
    stationary: Sequence[bool],
) -> List[WavefrontEdge]:
    n = len(polygon)
    return [
        WavefrontEdge(
            index=i,
            start=tuple(polygon[i]),
            end=tuple(polygon[(i + 1) % n]),
            weight=edge_weight(pitches[i], stationary[i]),
        )
        for i in range(n)
    ]


def solve_skeleton(
    polygon: Sequence[Vec2],
    edges: Sequence[WavefrontEdge],
    event_budget_factor: int = EVENT_BUDGET_FACTOR,
) -> SkeletonGraph:
    """Run the wavefront solve on a counter-clockwise ring.

    Raises:
        SkeletonInconsistent: the event budget ran out or the front did not close.
    """
    return WavefrontSolver(polygon, edges, event_budget_factor).solve()


__all__ = [
    "WavefrontEdge",
    "WavefrontSolver",
    "build_wavefront_edges",
    "edge_weight",
    "solve_skeleton",
]
