"""Tests for the shared knowledge graph."""

import asyncio
import json

import pytest

from agentic_society.errors import NotFoundError
from agentic_society.memory.knowledge_graph import KnowledgeGraph


@pytest.fixture
async def populated(graph: KnowledgeGraph):
    """Small graph: a -> b (two relationships), b -> c, c -> a."""
    a = await graph.add_node("Quarterly planning process", "process", tags=["planning"])
    b = await graph.add_node("Budget review meeting", "event", tags=["finance", "planning"])
    c = await graph.add_node("Hiring plan for engineering", "fact", tags=["hiring"])

    await graph.add_edge(a, b, "causes")
    await graph.add_edge(a, b, "part-of")
    await graph.add_edge(b, c, "causes")
    await graph.add_edge(c, a, "reports-to")
    return graph, a, b, c


async def test_add_and_get_node(graph: KnowledgeGraph):
    node_id = await graph.add_node("Security policy", "policy", tags=["policy"], metadata={"owner": "ciso"})
    node = await graph.get_node(node_id)

    assert node.content == "Security policy"
    assert node.tags == ("policy",)
    assert node.metadata == {"owner": "ciso"}
    assert await graph.get_node_edges(node_id) == []


async def test_get_missing_node_raises(graph: KnowledgeGraph):
    with pytest.raises(NotFoundError):
        await graph.get_node("node-missing")


async def test_remove_node_clears_every_index(graph: KnowledgeGraph):
    """Removed node is gone from the store and all indexes."""
    node_id = await graph.add_node("Onboarding checklist steps", "procedure", tags=["hr", "onboarding"])
    assert graph.index_keys_for(node_id)

    await graph.remove_node(node_id)

    with pytest.raises(NotFoundError):
        await graph.get_node(node_id)
    assert graph.index_keys_for(node_id) == []
    assert await graph.find_nodes_by_type("procedure") == []
    assert await graph.find_nodes_by_tag("hr") == []
    assert await graph.search_nodes("onboarding") == []


async def test_remove_node_strips_inbound_edges(populated):
    graph, a, b, c = populated

    await graph.remove_node(b)

    assert await graph.get_node_edges(a) == []
    assert [edge.to for edge in await graph.get_node_edges(c)] == [a]
    assert graph.size() == {"nodes": 2, "edges": 1}


async def test_update_tags_moves_node_between_tag_indexes(graph: KnowledgeGraph):
    node_id = await graph.add_node("Release checklist", "procedure", tags=["a"])

    await graph.update_node(node_id, tags=["b"])

    assert await graph.find_nodes_by_tag("a") == []
    assert [node.id for node in await graph.find_nodes_by_tag("b")] == [node_id]
    assert "tag:a" not in graph.index_keys_for(node_id)


async def test_update_content_retracts_old_words(graph: KnowledgeGraph):
    node_id = await graph.add_node("legacy deployment", "fact")

    updated = await graph.update_node(node_id, content="modern rollout", type="event")

    assert updated.content == "modern rollout"
    assert await graph.search_nodes("legacy") == []
    assert [node.id for node in await graph.search_nodes("rollout")] == [node_id]
    assert await graph.find_nodes_by_type("fact") == []
    assert sorted(graph.index_keys_for(node_id)) == ["type:event", "word:modern", "word:rollout"]


async def test_update_missing_node_raises(graph: KnowledgeGraph):
    with pytest.raises(NotFoundError):
        await graph.update_node("node-missing", content="x")


async def test_duplicate_edges_are_stored_once(graph: KnowledgeGraph):
    x = await graph.add_node("x node", "fact")
    y = await graph.add_node("y node", "fact")

    assert await graph.add_edge(x, y, "reports-to")
    assert not await graph.add_edge(x, y, "reports-to")
    assert not await graph.add_edge(x, y, "reports-to")

    assert len(await graph.get_node_edges(x)) == 1


async def test_parallel_relationships_and_self_loops_allowed(graph: KnowledgeGraph):
    x = await graph.add_node("x node", "fact")
    y = await graph.add_node("y node", "fact")

    assert await graph.add_edge(x, y, "causes")
    assert await graph.add_edge(x, y, "part-of")
    assert await graph.add_edge(x, x, "relates-to")

    assert len(await graph.get_node_edges(x)) == 3


async def test_edge_to_missing_endpoint_raises(graph: KnowledgeGraph):
    x = await graph.add_node("x node", "fact")

    with pytest.raises(NotFoundError):
        await graph.add_edge(x, "node-missing", "causes")
    with pytest.raises(NotFoundError):
        await graph.add_edge("node-missing", x, "causes")


async def test_neighbors_distance_zero_is_empty(populated):
    graph, a, _, _ = populated
    assert await graph.get_neighbors(a, 0) == []
    assert await graph.get_neighbors(a, -3) == []


async def test_neighbors_deduplicate_parallel_edges(populated):
    graph, a, b, _ = populated

    neighbors = await graph.get_neighbors(a, 1)

    assert [node.id for node in neighbors] == [b]


async def test_neighbors_follow_outgoing_edges_breadth_first(populated):
    graph, a, b, c = populated

    assert [node.id for node in await graph.get_neighbors(a, 2)] == [b, c]
    # Cycle back to the start node is not reported
    assert [node.id for node in await graph.get_neighbors(a, 5)] == [b, c]
    assert [node.id for node in await graph.get_neighbors(b, 1)] == [c]


async def test_search_combines_words_and_substrings(populated):
    graph, a, b, c = populated

    assert {node.id for node in await graph.search_nodes("planning")} == {a}
    assert {node.id for node in await graph.search_nodes("budget hiring")} == {b, c}
    # Word fragments only match as substrings
    assert {node.id for node in await graph.search_nodes("eng")} == {c}
    assert {node.id for node in await graph.search_nodes("PLANNING PROCESS")} == {a}


async def test_find_by_type_and_tag(populated):
    graph, a, b, _ = populated

    assert [node.id for node in await graph.find_nodes_by_type("process")] == [a]
    assert {node.id for node in await graph.find_nodes_by_tag("planning")} == {a, b}
    assert await graph.find_nodes_by_tag("unknown") == []


async def test_snapshot_round_trip(populated):
    """Imported graph answers searches and traversals like the original."""
    graph, a, b, c = populated

    snapshot = await graph.export_snapshot()
    restored = KnowledgeGraph()
    await restored.import_snapshot(json.loads(json.dumps(snapshot)))

    for query in ("planning", "budget hiring", "eng", "meeting"):
        original = [node.id for node in await graph.search_nodes(query)]
        assert [node.id for node in await restored.search_nodes(query)] == original

    for node_id in (a, b, c):
        for distance in (1, 2, 3):
            original = await graph.get_neighbors(node_id, distance)
            assert await restored.get_neighbors(node_id, distance) == original

    assert await restored.export_snapshot() == snapshot
    assert restored.size() == graph.size()


async def test_snapshot_uses_from_key(populated):
    graph, a, _, _ = populated

    snapshot = await graph.export_snapshot()
    entry = next(entry for entry in snapshot["edges"] if entry["from"] == a)

    assert {edge["relationship"] for edge in entry["edges"]} == {"causes", "part-of"}
    assert all(edge["from"] == a for edge in entry["edges"])
    assert "index" not in json.dumps(snapshot)


async def test_import_replaces_existing_content(populated, graph):
    other = KnowledgeGraph()
    await other.add_node("Only node", "fact")

    await graph.import_snapshot(await other.export_snapshot())

    assert graph.size() == {"nodes": 1, "edges": 0}
    assert await graph.search_nodes("planning") == []


async def test_concurrent_writers_keep_indexes_consistent(graph: KnowledgeGraph):
    ids = await asyncio.gather(*[
        graph.add_node(f"concurrent note number{i}", "fact", tags=["bulk"]) for i in range(50)
    ])

    assert len(set(ids)) == 50
    assert len(await graph.find_nodes_by_tag("bulk")) == 50
    assert len(await graph.search_nodes("concurrent")) == 50
