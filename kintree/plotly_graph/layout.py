from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..graph import EdgeKind, FamilyGraph
from .generations import Generations, assign_generations

logger = logging.getLogger(__name__)

NodeKey = Tuple[str, int]

_GOLDEN_ANGLE = math.pi * (3.0 - math.sqrt(5.0))
_INITIAL_RADIUS = 10.0
_EVENTS = ("tick", "end", "nonconvergence")


@dataclass
class LayoutConfig:
    width: float = 960.0
    height: float = 600.0
    charge_strength: float = -300.0
    charge_distance_min: float = 1.0
    charge_distance_max: float = math.inf
    union_link_distance: float = 40.0
    descent_link_distance: float = 90.0
    # None -> 1 / min(degree) of the two endpoints
    link_strength: Optional[float] = None
    center_strength: float = 1.0
    band_strength: float = 0.1
    band_spacing: float = 120.0
    alpha: float = 1.0
    alpha_min: float = 0.001
    alpha_decay: float = 1.0 - 0.001 ** (1.0 / 300.0)
    velocity_decay: float = 0.4
    reheat_alpha: float = 0.3
    max_iterations: int = 1000
    max_generation_passes: int = 100
    seed: int = 42


@dataclass
class NodeState:
    key: NodeKey
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None
    band_y: float = 0.0


@dataclass
class _Link:
    source: int
    target: int
    distance: float
    strength: float
    bias: float


class ForceSimulation:
    """
    Discrete-tick force layout for a FamilyGraph.

    Each tick decays ``alpha``, applies link springs, many-body repulsion,
    centering and generational banding, then integrates velocities. ``step``
    is the unit a redraw loop calls; it stops the run once ``alpha`` drops
    below ``alpha_min`` or the iteration budget is spent (non-convergence).
    Node state is keyed by ``GraphNode.key`` so positions and pins survive
    ``update_graph`` with a rebuilt graph.
    """

    def __init__(self, graph: Optional[FamilyGraph] = None, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()
        self._rng = random.Random(self.config.seed)
        self._listeners: Dict[str, List[Callable[["ForceSimulation"], None]]] = {e: [] for e in _EVENTS}
        self.nodes: List[NodeState] = []
        self._index: Dict[NodeKey, int] = {}
        self._links: List[_Link] = []
        self.alpha = self.config.alpha
        self.alpha_target = 0.0
        self.iterations = 0
        self.active = False
        self.converged: Optional[bool] = None
        self.generations: Optional[Generations] = None
        self.update_graph(graph or FamilyGraph(nodes=[], edges=[], unions={}))

    # ── events ──

    def on(self, name: str, fn: Callable[["ForceSimulation"], None]) -> "ForceSimulation":
        if name not in self._listeners:
            raise ValueError(f"Unknown simulation event: {name}")
        self._listeners[name].append(fn)
        return self

    def _emit(self, name: str):
        for fn in list(self._listeners[name]):
            fn(self)

    # ── graph ──

    @property
    def center(self) -> Tuple[float, float]:
        return (self.config.width / 2.0, self.config.height / 2.0)

    def update_graph(self, graph: FamilyGraph):
        """Swap in a (re)built graph, keeping state for nodes whose key survives."""
        cfg = self.config
        previous = {n.key: n for n in self.nodes}
        self.graph = graph
        self.generations = assign_generations(graph, max_passes=cfg.max_generation_passes)

        ordinals = self.generations.ordinals
        oldest, youngest = self.generations.span()
        mid = (oldest + youngest) / 2.0
        cx, cy = self.center

        nodes: List[NodeState] = []
        unplaced: List[int] = []
        for i, node in enumerate(graph.nodes):
            state = previous.get(node.key)
            if state is None:
                state = NodeState(key=node.key)
                unplaced.append(i)
            state.band_y = cy + (ordinals[node.id] - mid) * cfg.band_spacing
            nodes.append(state)

        neighbours: Dict[int, List[int]] = {i: [] for i in range(len(nodes))}
        for e in graph.edges:
            neighbours[e.source].append(e.target)
            neighbours[e.target].append(e.source)

        placed = set(range(len(nodes))) - set(unplaced)
        for i in unplaced:
            state = nodes[i]
            anchor = next((j for j in neighbours[i] if j in placed), None)
            if anchor is not None:
                spread = cfg.union_link_distance / 2.0
                state.x = nodes[anchor].x + self._rng.uniform(-spread, spread)
                state.y = nodes[anchor].y + self._rng.uniform(-spread, spread)
            else:
                radius = _INITIAL_RADIUS * math.sqrt(0.5 + i)
                angle = i * _GOLDEN_ANGLE
                state.x = cx + radius * math.cos(angle)
                state.y = cy + radius * math.sin(angle)
            placed.add(i)

        self.nodes = nodes
        self._index = {n.key: i for i, n in enumerate(nodes)}
        self._init_links()

        self.alpha = max(self.alpha, cfg.reheat_alpha)
        self.iterations = 0
        self.converged = None if nodes else True
        self.active = bool(nodes)

    def _init_links(self):
        cfg = self.config
        count = [0] * len(self.nodes)
        for e in self.graph.edges:
            count[e.source] += 1
            count[e.target] += 1
        links = []
        for e in self.graph.edges:
            s, t = e.source, e.target
            distance = cfg.descent_link_distance if e.kind is EdgeKind.DESCENT else cfg.union_link_distance
            strength = cfg.link_strength if cfg.link_strength is not None else 1.0 / min(count[s], count[t])
            links.append(_Link(s, t, distance, strength, count[s] / (count[s] + count[t])))
        self._links = links

    # ── forces ──

    def _jiggle(self) -> float:
        return (self._rng.random() - 0.5) * 1e-6

    def _apply_links(self, alpha: float):
        nodes = self.nodes
        for link in self._links:
            a, b = nodes[link.source], nodes[link.target]
            x = b.x + b.vx - a.x - a.vx or self._jiggle()
            y = b.y + b.vy - a.y - a.vy or self._jiggle()
            length = math.sqrt(x * x + y * y)
            k = (length - link.distance) / length * alpha * link.strength
            x *= k
            y *= k
            b.vx -= x * link.bias
            b.vy -= y * link.bias
            a.vx += x * (1.0 - link.bias)
            a.vy += y * (1.0 - link.bias)

    def _apply_charge(self, alpha: float):
        cfg = self.config
        nodes = self.nodes
        min2 = cfg.charge_distance_min ** 2
        max2 = cfg.charge_distance_max ** 2
        for i in range(len(nodes)):
            a = nodes[i]
            for j in range(i + 1, len(nodes)):
                b = nodes[j]
                x = b.x - a.x or self._jiggle()
                y = b.y - a.y or self._jiggle()
                l2 = x * x + y * y
                if l2 >= max2:
                    continue
                if l2 < min2:
                    l2 = math.sqrt(min2 * l2)
                w = cfg.charge_strength * alpha / l2
                a.vx += x * w
                a.vy += y * w
                b.vx -= x * w
                b.vy -= y * w

    def _apply_center(self):
        nodes = self.nodes
        cx, cy = self.center
        k = self.config.center_strength
        sx = (sum(n.x for n in nodes) / len(nodes) - cx) * k
        sy = (sum(n.y for n in nodes) / len(nodes) - cy) * k
        for n in nodes:
            n.x -= sx
            n.y -= sy

    def _apply_band(self, alpha: float):
        k = self.config.band_strength * alpha
        for n in self.nodes:
            n.vy += (n.band_y - n.y) * k

    def _integrate(self):
        keep = 1.0 - self.config.velocity_decay
        for n in self.nodes:
            if n.fx is None:
                n.vx *= keep
                n.x += n.vx
            else:
                n.x, n.vx = n.fx, 0.0
            if n.fy is None:
                n.vy *= keep
                n.y += n.vy
            else:
                n.y, n.vy = n.fy, 0.0

    # ── stepping ──

    def tick(self, iterations: int = 1) -> "ForceSimulation":
        """Advance ``iterations`` ticks unconditionally."""
        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * self.config.alpha_decay
            if self.nodes:
                self._apply_links(self.alpha)
                self._apply_charge(self.alpha)
                self._apply_center()
                self._apply_band(self.alpha)
                self._integrate()
            self.iterations += 1
        return self

    def step(self) -> bool:
        """One redraw-driven tick. Returns whether the run is still active."""
        if not self.active:
            return False
        self.tick()
        self._emit("tick")
        if self.alpha < self.config.alpha_min:
            self._finish(converged=True)
        elif self.iterations >= self.config.max_iterations:
            logger.warning(
                "Layout did not settle within %d iterations (alpha=%.4f); keeping current positions",
                self.iterations, self.alpha,
            )
            self._finish(converged=False)
        return self.active

    def _finish(self, converged: bool):
        self.active = False
        self.converged = converged
        if not converged:
            self._emit("nonconvergence")
        self._emit("end")

    def run(self) -> bool:
        """Step until the run ends. Returns whether it converged."""
        while self.step():
            pass
        return bool(self.converged)

    def reheat(self, alpha: Optional[float] = None):
        self.alpha = max(self.alpha, self.config.reheat_alpha if alpha is None else alpha)
        self.iterations = 0
        self.converged = None
        self.active = bool(self.nodes)

    def stop(self):
        self.active = False

    # ── pinning ──

    def node(self, key: NodeKey) -> NodeState:
        return self.nodes[self._index[key]]

    def pin(self, key: NodeKey, x: Optional[float] = None, y: Optional[float] = None, axes: str = "xy"):
        """Fix ``key`` on ``axes`` at (x, y), defaulting to its current position."""
        n = self.node(key)
        if "x" in axes:
            n.fx = n.x if x is None else x
            n.x, n.vx = n.fx, 0.0
        if "y" in axes:
            n.fy = n.y if y is None else y
            n.y, n.vy = n.fy, 0.0

    def drag(self, key: NodeKey, x: float, y: float):
        n = self.node(key)
        axes = ("x" if n.fx is not None else "") + ("y" if n.fy is not None else "")
        self.pin(key, x, y, axes=axes or "xy")
        if not self.active:
            self.reheat()

    def release(self, key: NodeKey):
        n = self.node(key)
        n.fx = n.fy = None
        self.reheat()

    def is_pinned(self, key: NodeKey) -> bool:
        n = self.node(key)
        return n.fx is not None or n.fy is not None

    # ── results ──

    def positions(self) -> Dict[NodeKey, Tuple[float, float]]:
        return {n.key: (n.x, n.y) for n in self.nodes}

    def positions_by_id(self) -> Dict[int, Tuple[float, float]]:
        return {i: (n.x, n.y) for i, n in enumerate(self.nodes)}


async def run_ticks(sim: ForceSimulation, interval: float = 1.0 / 60.0, until_rest: bool = False):
    """Drive ``sim`` one step per ``interval`` until cancelled (or at rest if ``until_rest``)."""
    while True:
        active = sim.step()
        if until_rest and not active:
            return sim.converged
        await asyncio.sleep(interval)


def compute_layout(graph: FamilyGraph, config: Optional[LayoutConfig] = None):
    """Lay out ``graph`` from scratch to rest. Returns (positions by node id, converged)."""
    sim = ForceSimulation(graph, config)
    converged = sim.run()
    return sim.positions_by_id(), converged
