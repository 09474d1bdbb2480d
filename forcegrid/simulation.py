"""Force-directed layout used to settle graphs before they are measured.

``ForceLayout`` follows the classic d3 (v3) force layout:

* ``alpha`` starts at 0.1 and is multiplied by 0.99 every tick; the layout is
  settled once it drops below 0.005,
* links act as Gauss-Seidel distance constraints weighted by ``link_strength``,
* every node is pulled towards the centre by ``gravity``,
* every pair of nodes interacts through ``charge`` (negative repels),
* positions are integrated with position Verlet and ``friction``.

The experiment runner only depends on the ``LayoutSimulator`` protocol, so any
other object with a compatible ``settle`` coroutine may be used instead.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import numpy as np

from forcegrid.models import Graph, LayoutBounds

logger = logging.getLogger("forcegrid.simulation")

ALPHA_START = 0.1
ALPHA_DECAY = 0.99
ALPHA_MIN = 0.005


class LayoutSimulator(Protocol):
    async def settle(
        self, graph: Graph, link_strength: float, charge: float, bounds: LayoutBounds
    ) -> Graph: ...


class ForceLayout:
    """d3-style force layout running on numpy arrays.

    Args:
        link_distance: Rest length of every link.
        friction: Velocity retained between ticks (1 - damping).
        gravity: Pull towards the centre of ``bounds``.
        seed: Seed for the random initial placement. ``None`` uses fresh entropy.
        yield_every: Ticks between two ``await asyncio.sleep(0)`` so other tasks
            (timeouts, cancellation) get a chance to run.
    """

    def __init__(
        self,
        link_distance: float = 20.0,
        friction: float = 0.9,
        gravity: float = 0.1,
        seed: Optional[int] = 0,
        yield_every: int = 10,
    ):
        self.link_distance = link_distance
        self.friction = friction
        self.gravity = gravity
        self.seed = seed
        self.yield_every = max(1, int(yield_every))
        self._rng = np.random.default_rng(seed)

    async def settle(
        self, graph: Graph, link_strength: float, charge: float, bounds: LayoutBounds
    ) -> Graph:
        """Run the layout until it cools down and write positions into ``graph``.

        Returns the same graph object, now with every node positioned.
        """
        n = graph.vertex_count
        if n == 0:
            return graph

        pos = self._initial_positions(graph, bounds)
        prev = pos.copy()
        sources = np.array([e.source for e in graph.edges], dtype=int)
        targets = np.array([e.target for e in graph.edges], dtype=int)
        # node weight = degree, as in d3; isolated nodes keep weight 0
        weight = np.bincount(np.concatenate([sources, targets]), minlength=n).astype(float)

        alpha = ALPHA_START
        ticks = 0
        while True:
            alpha *= ALPHA_DECAY
            if alpha < ALPHA_MIN:
                break
            self._apply_links(pos, sources, targets, weight, alpha, link_strength)
            self._apply_gravity(pos, alpha, bounds)
            self._apply_charge(pos, prev, alpha, charge)
            # position Verlet: x -= (px - x) * friction, px <- old x
            velocity = prev - pos
            prev = pos.copy()
            pos -= velocity * self.friction
            ticks += 1
            if ticks % self.yield_every == 0:
                await asyncio.sleep(0)

        for node, (x, y) in zip(graph.nodes, pos):
            node.x = float(x)
            node.y = float(y)
        logger.debug(
            "Settled n=%d m=%d link_strength=%s charge=%s after %d ticks",
            n,
            graph.edge_count,
            link_strength,
            charge,
            ticks,
        )
        return graph

    def _initial_positions(self, graph: Graph, bounds: LayoutBounds) -> np.ndarray:
        pos = np.empty((graph.vertex_count, 2), dtype=float)
        for i, node in enumerate(graph.nodes):
            if node.resolved:
                pos[i] = (node.x, node.y)
            else:
                pos[i] = self._rng.random(2) * (bounds.width, bounds.height)
        return pos

    def _apply_links(self, pos, sources, targets, weight, alpha, link_strength) -> None:
        # sequential on purpose: every constraint sees the previous one's update
        for s, t in zip(sources, targets):
            if s == t:
                continue
            dx, dy = pos[t] - pos[s]
            dist2 = dx * dx + dy * dy
            if not dist2:
                continue
            dist = np.sqrt(dist2)
            k_len = alpha * link_strength * (dist - self.link_distance) / dist
            dx *= k_len
            dy *= k_len
            k = weight[s] / (weight[t] + weight[s])
            pos[t, 0] -= dx * k
            pos[t, 1] -= dy * k
            k = 1.0 - k
            pos[s, 0] += dx * k
            pos[s, 1] += dy * k

    def _apply_gravity(self, pos, alpha, bounds: LayoutBounds) -> None:
        k = alpha * self.gravity
        if k:
            centre = np.array([bounds.width / 2.0, bounds.height / 2.0])
            pos += (centre - pos) * k

    def _apply_charge(self, pos, prev, alpha, charge) -> None:
        if not charge or len(pos) < 2:
            return
        # delta[i, j] = pos[j] - pos[i]
        delta = pos[np.newaxis, :, :] - pos[:, np.newaxis, :]
        dist2 = np.einsum("ijk,ijk->ij", delta, delta)
        with np.errstate(divide="ignore"):
            k = np.where(dist2 > 0, alpha * charge / dist2, 0.0)
        prev -= np.einsum("ij,ijk->ik", k, delta)
