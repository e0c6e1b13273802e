"""Tests for Jaccard scoring and top-K similarity linking."""

import pytest

from wikiwalk.graph import EdgeKind, GraphStore
from wikiwalk.similarity import SimilarityLinker, jaccard


class TestJaccard:
    def test_identical(self):
        assert jaccard({"a", "b"}, {"a", "b"}) == 1.0

    def test_disjoint(self):
        assert jaccard({"a"}, {"b"}) == 0.0

    def test_partial_overlap(self):
        # {"a", "b"} & {"b", "c"} = {"b"} => 1/3
        assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)

    def test_both_empty(self):
        assert jaccard(set(), set()) == 0.0


def build(make_source, tags):
    store = GraphStore(make_source(tags=tags))
    for title in tags:
        store.ensure_node(title)
    return store, SimilarityLinker(store, neighbors=3)


def similarity_edges(store):
    return [e for e in store.edges() if e.kind is EdgeKind.SIMILARITY]


def test_links_top_three_by_score(make_source):
    store, linker = build(make_source, {
        "P": {"x"},
        "Q": {"x", "y"},
        "R": {"x", "y", "z"},
        "S": {"x", "y", "z", "w"},
        "T": {"q"},
        "New": {"x", "y", "z", "w"},
    })
    edges = linker.link(store.get("New"))

    assert len(edges) == 3
    partners = {e.source if e.target == "New" else e.target for e in edges}
    assert partners == {"S", "R", "Q"}
    assert store.edge("New", "S", EdgeKind.SIMILARITY).weight == 1.0
    assert store.edge("New", "R", EdgeKind.SIMILARITY).weight == pytest.approx(0.75)


def test_ties_go_to_the_earliest_node(make_source):
    store, linker = build(make_source, {
        "First": {"x"},
        "Second": {"x"},
        "Third": {"x"},
        "Fourth": {"x"},
        "New": {"x"},
    })
    ranked = linker.rank(store.get("New"))
    assert [node.id for node, _ in ranked] == ["First", "Second", "Third"]


def test_untagged_nodes_are_skipped(make_source):
    store, linker = build(make_source, {"Empty": set(), "Tagged": {"x"}, "New": {"x"}})
    linker.link(store.get("New"))
    assert store.edge("New", "Empty", EdgeKind.SIMILARITY) is None
    assert store.edge("New", "Tagged", EdgeKind.SIMILARITY) is not None

    assert linker.link(store.get("Empty")) == []


def test_no_self_edges_and_no_zero_scores(make_source):
    store, linker = build(make_source, {"Other": {"q"}, "New": {"x"}})
    assert linker.link(store.get("New")) == []
    assert similarity_edges(store) == []


def test_at_most_k_edges_per_new_node(make_source):
    tags = {f"N{i}": {"shared", f"own{i}"} for i in range(10)}
    tags["New"] = {"shared"}
    store, linker = build(make_source, tags)
    assert len(linker.link(store.get("New"))) == 3


def test_later_nodes_are_not_scored(make_source):
    store, linker = build(make_source, {
        "Early": {"x", "y"},
        "New": {"x", "y", "z"},
        "Later": {"x", "y", "z"},
    })
    ranked = linker.rank(store.get("New"))
    assert [node.id for node, _ in ranked] == ["Early"]

    ranked = linker.rank(store.get("Later"))
    assert [node.id for node, _ in ranked] == ["New", "Early"]
