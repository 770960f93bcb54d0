"""Tests for tree merging, branch expansion and coordinate layout."""
from __future__ import annotations

import pytest

from conftest import person
from pedigree_graph.graph import DescendantNode, PedigreeNode
from pedigree_graph.layout import (
    LayoutConfig,
    TreeExpansions,
    TreeLayoutNode,
    compute_layout,
    merge_family_tree,
)

CONFIG = LayoutConfig()
W = CONFIG.node_width
GAP = CONFIG.node_gap
ROW = CONFIG.node_height + CONFIG.level_gap


def node(pid: str, generation: int = 0, **fields) -> TreeLayoutNode:
    return TreeLayoutNode(id=pid, person=person(pid), generation=generation, **fields)


def kids(*pids: str, spouse_of: dict[str, str] | None = None) -> tuple[TreeLayoutNode, ...]:
    spouse_of = spouse_of or {}
    return tuple(
        node(pid, -1, spouse=person(spouse_of[pid]) if pid in spouse_of else None)
        for pid in pids
    )


def assert_rows_clear(layout) -> None:
    """No two boxes in the same row overlap (spouses sit spouse_gap apart)."""
    rows: dict[float, list[float]] = {}
    for placed in layout.nodes:
        rows.setdefault(placed.y, []).append(placed.x)
    for xs in rows.values():
        xs.sort()
        for left, right in zip(xs, xs[1:]):
            assert right - left >= W + CONFIG.spouse_gap - 1e-9


class TestLayoutCoordinates:
    """Tests for compute_layout placement rules."""

    def test_two_children_centre_parent(self):
        """Children sit at least one box plus gap apart; the parent is their midpoint."""
        layout = compute_layout(node("root", children=kids("a", "b")))
        pos = layout.positions

        a, b, root = pos["root/C0"], pos["root/C1"], pos["root"]
        assert b.x - a.x >= W + GAP
        assert root.x == pytest.approx((a.x + b.x) / 2)

    def test_rows_by_generation(self):
        tree = node(
            "root",
            father=node("dad", 1, father=node("grandpa", 2)),
            children=kids("kid"),
        )
        pos = compute_layout(tree).positions

        assert pos["root"].y == 0
        assert pos["root/F"].y == pytest.approx(ROW)
        assert pos["root/F/F"].y == pytest.approx(2 * ROW)
        assert pos["root/C0"].y == pytest.approx(-ROW)

    def test_ancestor_midpoint(self):
        tree = node("root", father=node("dad", 1), mother=node("mom", 1))
        pos = compute_layout(tree).positions

        assert pos["root/F"].x == pytest.approx(W / 2)
        assert pos["root/M"].x == pytest.approx(W / 2 + W + GAP)
        assert pos["root"].x == pytest.approx((pos["root/F"].x + pos["root/M"].x) / 2)

    def test_single_parent_sits_above_child(self):
        tree = node("root", mother=node("mom", 1))
        pos = compute_layout(tree).positions

        assert pos["root"].x == pos["root/M"].x

    def test_couple_centres_over_children(self):
        """With a spouse the pair, not the person, is centred over the children."""
        tree = node("root", spouse=person("wife"), children=kids("a", "b"))
        layout = compute_layout(tree)
        pos = layout.positions

        children_mid = (pos["root/C0"].x + pos["root/C1"].x) / 2
        pair_mid = (pos["root"].x + pos["root/S"].x) / 2
        assert pair_mid == pytest.approx(children_mid)
        assert pos["root/S"].x - pos["root"].x == pytest.approx(W + CONFIG.spouse_gap)
        assert layout.node("root/S").role == "spouse"

    def test_leaf_with_spouse_reserves_room(self):
        tree = node("root", children=kids("a", "b", spouse_of={"a": "a-wife"}))
        pos = compute_layout(tree).positions

        spouse_right = pos["root/C0/S"].x + W / 2
        b_left = pos["root/C1"].x - W / 2
        assert b_left - spouse_right == pytest.approx(GAP)

    def test_no_overlap_within_a_row(self):
        tree = node(
            "root",
            spouse=person("wife"),
            father=node("dad", 1, father=node("gf", 2), mother=node("gm", 2)),
            mother=node("mom", 1, mother=node("mgm", 2)),
            children=(
                node(
                    "a",
                    -1,
                    spouse=person("a-s"),
                    children=(node("a1", -2), node("a2", -2)),
                ),
                node("b", -1),
                node("c", -1, spouse=person("c-s")),
            ),
        )
        assert_rows_clear(compute_layout(tree))

    @pytest.mark.parametrize("order", [("a", "b"), ("b", "a")])
    def test_couple_wider_than_its_only_child(self, order):
        """A couple over a single child never runs into its siblings."""
        family = {
            "a": node("a", -1, spouse=person("a-s"), children=(node("a1", -2),)),
            "b": node("b", -1),
        }
        tree = node("root", children=tuple(family[pid] for pid in order))
        layout = compute_layout(tree)

        assert_rows_clear(layout)
        pos = layout.positions
        a_key = f"root/C{order.index('a')}"
        assert (pos[a_key].x + pos[f"{a_key}/S"].x) / 2 == pytest.approx(pos[f"{a_key}/C0"].x)

    def test_nested_narrow_couples(self):
        tree = node(
            "root",
            children=(
                node("b", -1, children=(node("b1", -2),)),
                node(
                    "a",
                    -1,
                    spouse=person("a-s"),
                    children=(node("a1", -2, spouse=person("a1-s"), children=(node("a11", -3),)),),
                ),
                node("c", -1, spouse=person("c-s")),
            ),
        )
        assert_rows_clear(compute_layout(tree))

    def test_root_reconciled_between_halves(self):
        """The ancestor half shifts so the root has one x."""
        tree = node(
            "root",
            father=node("dad", 1),
            mother=node("mom", 1),
            children=kids("a", "b", "c"),
        )
        pos = compute_layout(tree).positions

        children_mid = (pos["root/C0"].x + pos["root/C2"].x) / 2
        assert pos["root"].x == pytest.approx(children_mid)
        assert pos["root"].x == pytest.approx((pos["root/F"].x + pos["root/M"].x) / 2)

    def test_pedigree_collapse_gets_two_boxes(self):
        shared = node("shared", 2)
        tree = node(
            "root",
            father=node("dad", 1, father=shared),
            mother=node("mom", 1, father=shared),
        )
        layout = compute_layout(tree)

        placements = [n for n in layout.nodes if n.person_id == "shared"]
        assert [n.key for n in placements] == ["root/F/F", "root/M/F"]
        assert placements[0].x != placements[1].x
        assert layout.position_of("shared") == (placements[0].x, placements[0].y)

    def test_bounds_cover_every_box(self):
        tree = node("root", father=node("dad", 1), children=kids("a", "b"))
        layout = compute_layout(tree)

        for placed in layout.nodes:
            box = placed.box(CONFIG)
            assert layout.bounds.min_x <= box.min_x
            assert layout.bounds.max_x >= box.max_x
            assert layout.bounds.min_y <= box.min_y
            assert layout.bounds.max_y >= box.max_y

    def test_custom_config(self):
        config = LayoutConfig(node_width=100, node_gap=20)
        pos = compute_layout(node("root", children=kids("a", "b")), config).positions

        assert pos["root/C1"].x - pos["root/C0"].x == pytest.approx(120)

    def test_position_of_unknown(self):
        assert compute_layout(node("root")).position_of("nobody") is None


class TestSiblingPanels:
    """Tests for the on-demand sibling overlay."""

    def tree(self):
        return node(
            "root",
            spouse=person("wife"),
            father=node("dad", 1),
            children=kids("kid"),
            siblings=(person("sis"), person("bro")),
            spouse_siblings=(person("wife-sis"),),
        )

    def test_hidden_by_default(self):
        assert compute_layout(self.tree()).panels == []

    def test_root_siblings_left_of_tree(self):
        layout = compute_layout(self.tree(), visible_siblings={"root"})

        (panel,) = layout.panels
        tree_left = min(n.box(CONFIG).min_x for n in layout.nodes)
        assert panel.side == "left"
        assert [m.person_id for m in panel.members] == ["sis", "bro"]
        assert panel.bounds.max_x < tree_left
        xs = {m.x for m in panel.members}
        assert len(xs) == 1
        assert panel.members[1].y - panel.members[0].y == pytest.approx(
            CONFIG.node_height + CONFIG.node_gap
        )

    def test_spouse_siblings_right_of_tree(self):
        layout = compute_layout(self.tree(), visible_siblings={"wife"})

        (panel,) = layout.panels
        tree_right = max(n.box(CONFIG).max_x for n in layout.nodes)
        assert panel.side == "right"
        assert panel.owner_id == "wife"
        assert panel.bounds.min_x > tree_right
        assert layout.bounds.max_x == panel.bounds.max_x

    def test_rendered_siblings_excluded(self):
        tree = node(
            "root",
            children=kids("kid"),
            siblings=(person("kid"), person("sis")),
        )
        layout = compute_layout(tree, visible_siblings={"root"})

        assert [m.person_id for m in layout.panels[0].members] == ["sis"]

    def test_no_panel_when_every_sibling_rendered(self):
        tree = node("root", children=kids("kid"), siblings=(person("kid"),))
        assert compute_layout(tree, visible_siblings={"root"}).panels == []


def pedigree(pid: str, generation: int = 0, **fields) -> PedigreeNode:
    return PedigreeNode(id=pid, person=person(pid), generation=generation, **fields)


def descendant(pid: str, generation: int = 0, **fields) -> DescendantNode:
    return DescendantNode(id=pid, person=person(pid), generation=generation, **fields)


class TestMergeFamilyTree:
    """Tests for merge_family_tree and TreeExpansions."""

    def test_merge_sides(self):
        up = pedigree("root", father=pedigree("dad", 1, has_more_ancestors=True),
                      has_more_ancestors=True)
        down = descendant(
            "root",
            spouse=person("wife"),
            marriage_year=1950,
            children=(descendant("kid", 1, children=(descendant("gk", 2),)),),
        )

        tree = merge_family_tree(up, down)

        assert tree.father.id == "dad"
        assert tree.father.generation == 1
        assert tree.spouse.id == "wife"
        assert tree.marriage_year == 1950
        assert tree.children[0].generation == -1
        assert tree.children[0].children[0].generation == -2
        assert tree.has_more_ancestors is True
        data = tree.to_dict()
        assert data["marriageYear"] == 1950
        assert data["children"][0]["generation"] == -1

    def test_only_one_side(self):
        assert merge_family_tree(pedigree("root"), None).id == "root"
        assert merge_family_tree(None, descendant("root")).id == "root"
        assert merge_family_tree(None, None) is None

    def test_ancestor_expansion_replaces_parents(self):
        up = pedigree("root", father=pedigree("dad", 1, has_more_ancestors=True),
                      has_more_ancestors=True)
        extra = pedigree("dad", father=pedigree("gp", 1, father=pedigree("ggp", 2)))
        expansions = TreeExpansions()
        assert expansions.toggle_ancestors("dad", extra) is True

        tree = merge_family_tree(up, None, expansions)

        assert tree.father.father.id == "gp"
        assert tree.father.father.generation == 2
        assert tree.father.father.father.generation == 3
        assert tree.father.has_more_ancestors is False
        # records are untouched
        assert up.father.father is None

    def test_expansion_ignored_without_more_flag(self):
        up = pedigree("root", father=pedigree("dad", 1, has_more_ancestors=False))
        expansions = TreeExpansions(ancestors={"dad": pedigree("dad", father=pedigree("x", 1))})

        assert merge_family_tree(up, None, expansions).father.father is None

    def test_descendant_expansion_rebases_generations(self):
        down = descendant(
            "root",
            children=(descendant("kid", 1, has_more_descendants=True),),
            has_more_descendants=True,
        )
        extra = descendant("kid", spouse=person("kid-wife"),
                           children=(descendant("gk", 1),))
        expansions = TreeExpansions(descendants={"kid": extra})

        tree = merge_family_tree(None, down, expansions)

        kid = tree.children[0]
        assert kid.spouse.id == "kid-wife"
        assert kid.children[0].id == "gk"
        assert kid.children[0].generation == -2

    def test_toggle_collapses(self):
        up = pedigree("root", father=pedigree("dad", 1, has_more_ancestors=True),
                      has_more_ancestors=True)
        expansions = TreeExpansions()
        expansions.toggle_ancestors("dad", pedigree("dad", father=pedigree("gp", 1)))

        assert expansions.toggle_ancestors("dad") is False
        assert not expansions
        assert merge_family_tree(up, None, expansions).father.father is None

    def test_toggle_without_subtree_rejected(self):
        with pytest.raises(ValueError):
            TreeExpansions().toggle_descendants("kid")

    def test_self_referencing_expansion_applied_once(self):
        """An expansion whose subtree contains the same id again is not reapplied."""
        up = pedigree("root", father=pedigree("dad", 1, has_more_ancestors=True),
                      has_more_ancestors=True)
        loop = pedigree("dad", father=pedigree("dad", 1, has_more_ancestors=True),
                        has_more_ancestors=True)
        tree = merge_family_tree(up, None, TreeExpansions(ancestors={"dad": loop}))

        assert tree.father.father.id == "dad"
        assert tree.father.father.father is None

    def test_layout_after_expansion(self):
        up = pedigree("root", father=pedigree("dad", 1, has_more_ancestors=True),
                      has_more_ancestors=True)
        expansions = TreeExpansions(
            ancestors={"dad": pedigree("dad", father=pedigree("gp", 1), mother=pedigree("gm", 1))}
        )
        layout = compute_layout(merge_family_tree(up, None, expansions))
        pos = layout.positions

        assert pos["root/F/F"].y == pytest.approx(2 * ROW)
        assert pos["root/F"].x == pytest.approx((pos["root/F/F"].x + pos["root/F/M"].x) / 2)
