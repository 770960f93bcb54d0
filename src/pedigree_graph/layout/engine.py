"""Coordinate assignment for the merged family tree.

Pure and synchronous: takes a ``TreeLayoutNode`` and returns positions in
layout units. ``x`` is the centre of a person's box, ``y`` the centre of
its row. Painting is left to the renderer.

Every rendered box gets a path key ("root", "root/F", "root/M/F",
"root/C0/C1", "root/C0/S" for a spouse), so a person appearing twice in the
tree (pedigree collapse) gets two placements.
"""
from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple

from ..logging import get_logger

if TYPE_CHECKING:
    from ..models import Person
    from .tree import TreeLayoutNode

logger = get_logger(__name__)


@dataclass(frozen=True)
class LayoutConfig:
    node_width: float = 115
    node_height: float = 42
    level_gap: float = 60
    node_gap: float = 8
    spouse_gap: float = 4
    panel_padding: float = 6

    @property
    def row_height(self) -> float:
        return self.node_height + self.level_gap

    @property
    def spouse_offset(self) -> float:
        """Centre-to-centre distance from a person to their spouse."""
        return self.node_width + self.spouse_gap

    def pair_width(self, has_spouse: bool) -> float:
        return 2 * self.node_width + self.spouse_gap if has_spouse else self.node_width


class Point(NamedTuple):
    x: float
    y: float


class Bounds(NamedTuple):
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def union(self, other: Bounds) -> Bounds:
        return Bounds(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "minX": self.min_x,
            "minY": self.min_y,
            "maxX": self.max_x,
            "maxY": self.max_y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class PositionedNode:
    key: str
    person_id: str
    role: str  # root | ancestor | descendant | spouse | sibling
    x: float
    y: float
    generation: int

    def box(self, config: LayoutConfig) -> Bounds:
        half_w, half_h = config.node_width / 2, config.node_height / 2
        return Bounds(self.x - half_w, self.y - half_h, self.x + half_w, self.y + half_h)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "personId": self.person_id,
            "role": self.role,
            "x": self.x,
            "y": self.y,
            "generation": self.generation,
        }


@dataclass(frozen=True)
class SiblingPanel:
    """A bordered vertical stack of siblings beside the tree."""
    owner_id: str
    side: str  # "left" | "right"
    members: tuple[PositionedNode, ...]
    bounds: Bounds

    def to_dict(self) -> dict[str, Any]:
        return {
            "ownerId": self.owner_id,
            "side": self.side,
            "members": [m.to_dict() for m in self.members],
            "bounds": self.bounds.to_dict(),
        }


@dataclass
class TreeLayout:
    nodes: list[PositionedNode] = field(default_factory=list)
    panels: list[SiblingPanel] = field(default_factory=list)
    bounds: Bounds = Bounds(0, 0, 0, 0)

    @property
    def positions(self) -> dict[str, Point]:
        """Every placement (tree boxes, spouses, panel members) by key."""
        result = {node.key: Point(node.x, node.y) for node in self.nodes}
        for panel in self.panels:
            result.update((m.key, Point(m.x, m.y)) for m in panel.members)
        return result

    def position_of(self, person_id: str) -> Point | None:
        """First placement of a person, in root-first tree order."""
        for node in self.nodes:
            if node.person_id == person_id:
                return Point(node.x, node.y)
        for panel in self.panels:
            for member in panel.members:
                if member.person_id == person_id:
                    return Point(member.x, member.y)
        return None

    def node(self, key: str) -> PositionedNode | None:
        for node in self.nodes:
            if node.key == key:
                return node
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "panels": [panel.to_dict() for panel in self.panels],
            "bounds": self.bounds.to_dict(),
        }


class _Span(NamedTuple):
    lo: float
    hi: float

    def union(self, other: _Span) -> _Span:
        return _Span(min(self.lo, other.lo), max(self.hi, other.hi))


def compute_layout(
    root: TreeLayoutNode,
    config: LayoutConfig | None = None,
    visible_siblings: Collection[str] = (),
) -> TreeLayout:
    """Assign coordinates to every box of the merged tree.

    Ancestor leaves are laid left to right one box apart and each internal
    ancestor sits over the middle of its parents' span. Descendants mirror
    this, except a leaf reserves room for its spouse and a node with a spouse
    shifts left so the couple, not the node, is centred over the children.
    Each row keeps a contour of its rightmost box, and a subtree whose couple
    would start inside it is moved right as a whole.
    The ancestor side is then shifted so both halves agree on the root's x.

    Args:
        root: Merged tree
        config: Box sizes and gaps
        visible_siblings: Person ids (root or root's spouse) whose sibling
            panels are shown

    Returns:
        Positions for every box plus the overall bounds
    """
    config = config or LayoutConfig()
    w = config.node_width

    # --- ancestors: x per key, relative to their own leaf origin ---
    ancestor_x: dict[str, float] = {}
    next_leaf = 0.0

    def place_ancestor(node: TreeLayoutNode, key: str) -> _Span:
        nonlocal next_leaf
        spans = []
        if node.father is not None:
            spans.append(place_ancestor(node.father, f"{key}/F"))
        if node.mother is not None:
            spans.append(place_ancestor(node.mother, f"{key}/M"))
        if not spans:
            x = next_leaf + w / 2
            next_leaf += w + config.node_gap
        else:
            span = spans[0].union(spans[-1])
            x = (span.lo + span.hi) / 2
        ancestor_x[key] = x
        own = _Span(x - w / 2, x + w / 2)
        return own.union(spans[0].union(spans[-1])) if spans else own

    # --- descendants ---
    descendant_x: dict[str, float] = {}
    # depth below the root -> first free x in that row
    row_end: dict[int, float] = {}

    def place_descendant(
        node: TreeLayoutNode, key: str, depth: int
    ) -> tuple[list[str], dict[int, _Span]]:
        nonlocal next_leaf
        pair = config.pair_width(node.spouse is not None)
        keys = [key]
        extents: dict[int, _Span] = {}
        for index, child in enumerate(node.children):
            child_keys, child_extents = place_descendant(child, f"{key}/C{index}", depth + 1)
            keys.extend(child_keys)
            for row, span in child_extents.items():
                extents[row] = extents[row].union(span) if row in extents else span

        if not node.children:
            left = max(next_leaf, row_end.get(depth, next_leaf))
            next_leaf = left + pair + config.node_gap
        else:
            children = extents[depth + 1]
            middle = (children.lo + children.hi) / 2
            left = middle - pair / 2
            floor = row_end.get(depth)
            if floor is not None and left < floor:
                # The couple is wider than its children: push the whole subtree right.
                delta = floor - left
                for child_key in keys[1:]:
                    descendant_x[child_key] += delta
                extents = {row: _Span(s.lo + delta, s.hi + delta) for row, s in extents.items()}
                left += delta
                next_leaf += delta

        descendant_x[key] = left + w / 2
        extents[depth] = _Span(left, left + pair)
        for row, span in extents.items():
            end = span.hi + config.node_gap
            row_end[row] = max(row_end.get(row, end), end)
        return keys, extents

    place_ancestor(root, "root")
    if root.children:
        next_leaf = 0.0
        place_descendant(root, "root", 0)
        shift = descendant_x["root"] - ancestor_x["root"]
    else:
        shift = 0.0

    # --- emit in root-first order ---
    layout = TreeLayout()
    rendered: set[str] = set()

    def emit(node: TreeLayoutNode, key: str, role: str, x: float) -> None:
        y = node.generation * config.row_height
        layout.nodes.append(PositionedNode(key, node.id, role, x, y, node.generation))
        rendered.add(node.id)
        if node.spouse is not None and node.generation <= 0:
            layout.nodes.append(
                PositionedNode(
                    f"{key}/S", node.spouse.id, "spouse", x + config.spouse_offset, y, node.generation
                )
            )
            rendered.add(node.spouse.id)

    stack: list[tuple[TreeLayoutNode, str]] = [(root, "root")]
    while stack:
        node, key = stack.pop()
        if key == "root":
            emit(node, key, "root", ancestor_x[key] + shift)
        elif node.generation > 0:
            emit(node, key, "ancestor", ancestor_x[key] + shift)
        else:
            emit(node, key, "descendant", descendant_x[key])
        for index in range(len(node.children) - 1, -1, -1):
            stack.append((node.children[index], f"{key}/C{index}"))
        if node.generation >= 0:
            if node.mother is not None:
                stack.append((node.mother, f"{key}/M"))
            if node.father is not None:
                stack.append((node.father, f"{key}/F"))

    tree_bounds = _bounds_of(layout.nodes, config)
    bounds = tree_bounds

    root_y = 0.0
    visible = set(visible_siblings)
    if root.id in visible:
        panel = _sibling_panel(
            root.id, root.siblings, rendered, "left", tree_bounds, root_y, config
        )
        if panel is not None:
            layout.panels.append(panel)
            bounds = bounds.union(panel.bounds)
    if root.spouse is not None and root.spouse.id in visible:
        panel = _sibling_panel(
            root.spouse.id, root.spouse_siblings, rendered, "right", tree_bounds, root_y, config
        )
        if panel is not None:
            layout.panels.append(panel)
            bounds = bounds.union(panel.bounds)

    layout.bounds = bounds
    logger.debug(
        "layout_computed",
        root_id=root.id,
        nodes=len(layout.nodes),
        panels=len(layout.panels),
        width=bounds.width,
        height=bounds.height,
    )
    return layout


def _bounds_of(nodes: list[PositionedNode], config: LayoutConfig) -> Bounds:
    boxes = [node.box(config) for node in nodes]
    result = boxes[0]
    for box in boxes[1:]:
        result = result.union(box)
    return result


def _sibling_panel(
    owner_id: str,
    siblings: tuple[Person, ...],
    rendered: set[str],
    side: str,
    tree_bounds: Bounds,
    centre_y: float,
    config: LayoutConfig,
) -> SiblingPanel | None:
    shown = [p for p in dict((p.id, p) for p in siblings).values() if p.id not in rendered]
    if not shown:
        return None

    pad = config.panel_padding
    step = config.node_height + config.node_gap
    stack_height = len(shown) * config.node_height + (len(shown) - 1) * config.node_gap
    top = centre_y - stack_height / 2 + config.node_height / 2
    if side == "left":
        x = tree_bounds.min_x - config.node_gap - pad - config.node_width / 2
    else:
        x = tree_bounds.max_x + config.node_gap + pad + config.node_width / 2

    members = tuple(
        PositionedNode(f"siblings:{owner_id}/{i}", person.id, "sibling", x, top + i * step, 0)
        for i, person in enumerate(shown)
    )
    bounds = Bounds(
        x - config.node_width / 2 - pad,
        top - config.node_height / 2 - pad,
        x + config.node_width / 2 + pad,
        top + (len(shown) - 1) * step + config.node_height / 2 + pad,
    )
    return SiblingPanel(owner_id=owner_id, side=side, members=members, bounds=bounds)
