"""Weighted straight skeleton."""

from roofengine.skeleton.graph import ArcKind, NodeKind, SkeletonEdge, SkeletonGraph, SkeletonNode
from roofengine.skeleton.wavefront import WavefrontEdge, build_wavefront_edges, solve_skeleton

__all__ = [
    "ArcKind",
    "NodeKind",
    "SkeletonEdge",
    "SkeletonGraph",
    "SkeletonNode",
    "WavefrontEdge",
    "build_wavefront_edges",
    "solve_skeleton",
]
