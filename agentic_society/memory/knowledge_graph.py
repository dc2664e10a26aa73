
"""
Shared knowledge graph for the agentic society
Directed node/edge store with type, tag and content-word indexes
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional, Any, Set, Tuple, Iterator
from pydantic import BaseModel, ConfigDict, Field
from loguru import logger

from ..errors import NotFoundError
from ..models import generate_id, utc_now


MIN_INDEXED_WORD_LENGTH = 3


class KnowledgeNode(BaseModel):
    """Unit of shared knowledge"""
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    type: str = Field(..., description="fact, process, relationship, event, concept, ...")
    tags: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_modified: datetime = Field(default_factory=utc_now)


class KnowledgeEdge(BaseModel):
    """Directed, labelled relationship between two nodes"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_node: str = Field(..., alias="from")
    to: str
    relationship: str = Field(..., description="causes, part-of, reports-to, ...")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_modified: datetime = Field(default_factory=utc_now)

    def same_triple(self, other: "KnowledgeEdge") -> bool:
        return (self.from_node, self.to, self.relationship) == (other.from_node, other.to, other.relationship)


class _ReadWriteLock:
    """Many concurrent readers or one writer"""

    def __init__(self):
        self._condition = asyncio.Condition()
        self._readers = 0
        self._writing = False

    @asynccontextmanager
    async def read(self):
        async with self._condition:
            await self._condition.wait_for(lambda: not self._writing)
            self._readers += 1
        try:
            yield
        finally:
            async with self._condition:
                self._readers -= 1
                if self._readers == 0:
                    self._condition.notify_all()

    @asynccontextmanager
    async def write(self):
        async with self._condition:
            await self._condition.wait_for(lambda: not self._writing and self._readers == 0)
            self._writing = True
        try:
            yield
        finally:
            async with self._condition:
                self._writing = False
                self._condition.notify_all()


def _content_words(content: str) -> Set[str]:
    return {word for word in content.lower().split() if len(word) >= MIN_INDEXED_WORD_LENGTH}


class KnowledgeGraph:
    """
    Indexed directed graph shared by all agents.

    Nodes own their outgoing adjacency lists. The type, tag and word indexes are
    derived state: every mutation retracts a node's entries before reinserting them,
    and imports rebuild them from scratch.
    """

    def __init__(self):
        self._nodes: Dict[str, KnowledgeNode] = {}
        self._edges: Dict[str, List[KnowledgeEdge]] = {}

        # Derived indexes
        self._type_index: Dict[str, Set[str]] = {}
        self._tag_index: Dict[str, Set[str]] = {}
        self._word_index: Dict[str, Set[str]] = {}

        self._lock = _ReadWriteLock()

    # Index maintenance

    def _index_entries(self, node: KnowledgeNode) -> Iterator[Tuple[Dict[str, Set[str]], str]]:
        yield self._type_index, node.type
        for tag in node.tags:
            yield self._tag_index, tag
        for word in _content_words(node.content):
            yield self._word_index, word

    def _insert_into_indexes(self, node: KnowledgeNode):
        for index, key in self._index_entries(node):
            index.setdefault(key, set()).add(node.id)

    def _retract_from_indexes(self, node: KnowledgeNode):
        for index, key in self._index_entries(node):
            ids = index.get(key)
            if ids is None:
                continue
            ids.discard(node.id)
            if not ids:
                del index[key]

    def _nodes_for(self, node_ids: Set[str]) -> List[KnowledgeNode]:
        # Node-store order keeps results stable
        return [node for node_id, node in self._nodes.items() if node_id in node_ids]

    def _require_node(self, node_id: str) -> KnowledgeNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NotFoundError(f"Knowledge node {node_id} not found")
        return node

    # Mutations

    async def add_node(
        self,
        content: str,
        type: str,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Add a node and index it. Returns the new node ID."""

        node = KnowledgeNode(
            id=generate_id("node"),
            content=content,
            type=type,
            tags=tuple(dict.fromkeys(tags or [])),
            metadata=metadata or {},
        )

        async with self._lock.write():
            self._nodes[node.id] = node
            self._insert_into_indexes(node)
            self._edges.setdefault(node.id, [])

        logger.debug(f"Knowledge node added: {node.id} ({type})")
        return node.id

    async def add_edge(
        self,
        from_node_id: str,
        to_node_id: str,
        relationship: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Add a directed edge between two existing nodes

        Returns:
            True if the edge was added, False if the same triple already existed
        """

        edge = KnowledgeEdge(
            from_node=from_node_id,
            to=to_node_id,
            relationship=relationship,
            metadata=metadata or {},
        )

        async with self._lock.write():
            self._require_node(from_node_id)
            self._require_node(to_node_id)

            outgoing = self._edges.setdefault(from_node_id, [])
            if any(existing.same_triple(edge) for existing in outgoing):
                return False

            outgoing.append(edge)

        logger.debug(f"Knowledge edge added: {from_node_id} -[{relationship}]-> {to_node_id}")
        return True

    async def update_node(
        self,
        node_id: str,
        content: Optional[str] = None,
        type: Optional[str] = None,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> KnowledgeNode:
        """Apply changes to a node, re-indexing it. Returns the updated node."""

        updates: Dict[str, Any] = {"last_modified": utc_now()}
        if content is not None:
            updates["content"] = content
        if type is not None:
            updates["type"] = type
        if tags is not None:
            updates["tags"] = tuple(dict.fromkeys(tags))
        if metadata is not None:
            updates["metadata"] = metadata

        async with self._lock.write():
            node = self._require_node(node_id)

            # Old entries go first, otherwise stale keys survive the change
            self._retract_from_indexes(node)
            updated = node.model_copy(update=updates)
            self._nodes[node_id] = updated
            self._insert_into_indexes(updated)

        return updated

    async def remove_node(self, node_id: str) -> KnowledgeNode:
        """Remove a node with its outgoing edges and every edge pointing at it"""

        async with self._lock.write():
            node = self._require_node(node_id)

            self._retract_from_indexes(node)
            del self._nodes[node_id]
            self._edges.pop(node_id, None)

            for from_id, edges in self._edges.items():
                kept = [edge for edge in edges if edge.to != node_id]
                if len(kept) != len(edges):
                    self._edges[from_id] = kept

        logger.debug(f"Knowledge node removed: {node_id}")
        return node

    # Queries

    async def get_node(self, node_id: str) -> KnowledgeNode:
        async with self._lock.read():
            return self._require_node(node_id)

    async def has_node(self, node_id: str) -> bool:
        async with self._lock.read():
            return node_id in self._nodes

    async def find_nodes_by_type(self, type: str) -> List[KnowledgeNode]:
        async with self._lock.read():
            return self._nodes_for(self._type_index.get(type, set()))

    async def find_nodes_by_tag(self, tag: str) -> List[KnowledgeNode]:
        async with self._lock.read():
            return self._nodes_for(self._tag_index.get(tag, set()))

    async def search_nodes(self, query: str) -> List[KnowledgeNode]:
        """
        Lexical search: union of word-index hits for the query's words and
        nodes whose content contains the whole query. Results are not ranked.
        """

        query_lower = query.lower()

        async with self._lock.read():
            results: Set[str] = set()

            for word in _content_words(query_lower):
                results.update(self._word_index.get(word, set()))

            for node_id, node in self._nodes.items():
                if query_lower in node.content.lower():
                    results.add(node_id)

            return self._nodes_for(results)

    async def get_node_edges(self, node_id: str) -> List[KnowledgeEdge]:
        """Outgoing edges of a node"""
        async with self._lock.read():
            return list(self._edges.get(node_id, []))

    async def get_neighbors(self, node_id: str, distance: int = 1) -> List[KnowledgeNode]:
        """
        Nodes reachable by following outgoing edges up to `distance` hops

        Each reachable node is returned once, in breadth-first order. The start
        node is never part of the result.
        """

        if distance < 1:
            return []

        async with self._lock.read():
            visited = {node_id}
            neighbors: List[KnowledgeNode] = []
            frontier = [node_id]

            for _ in range(distance):
                next_frontier = []

                for current_id in frontier:
                    for edge in self._edges.get(current_id, []):
                        if edge.to in visited:
                            continue
                        visited.add(edge.to)

                        node = self._nodes.get(edge.to)
                        if node is not None:
                            neighbors.append(node)
                            next_frontier.append(edge.to)

                if not next_frontier:
                    break
                frontier = next_frontier

            return neighbors

    def index_keys_for(self, node_id: str) -> List[str]:
        """Every index key currently referencing a node, as type:/tag:/word: strings"""

        keys = []
        for prefix, index in (("type", self._type_index), ("tag", self._tag_index), ("word", self._word_index)):
            for key, ids in index.items():
                if node_id in ids:
                    keys.append(f"{prefix}:{key}")
        return keys

    def size(self) -> Dict[str, int]:
        return {
            "nodes": len(self._nodes),
            "edges": sum(len(edges) for edges in self._edges.values())
        }

    # Snapshots

    async def export_snapshot(self) -> Dict[str, Any]:
        """
        JSON-serializable snapshot of nodes and per-node adjacency lists.
        Indexes are derived state and are not included.
        """

        async with self._lock.read():
            return {
                "nodes": [node.model_dump(mode="json") for node in self._nodes.values()],
                "edges": [
                    {"from": from_id, "edges": [edge.model_dump(mode="json", by_alias=True) for edge in edges]}
                    for from_id, edges in self._edges.items()
                ]
            }

    async def import_snapshot(self, data: Dict[str, Any]):
        """Replace the graph with a snapshot and rebuild every index"""

        nodes = [KnowledgeNode.model_validate(node) for node in data.get("nodes", [])]
        adjacency = [
            (entry["from"], [KnowledgeEdge.model_validate(edge) for edge in entry.get("edges", [])])
            for entry in data.get("edges", [])
        ]

        async with self._lock.write():
            self._nodes.clear()
            self._edges.clear()
            self._type_index.clear()
            self._tag_index.clear()
            self._word_index.clear()

            for node in nodes:
                self._nodes[node.id] = node
                self._insert_into_indexes(node)

            for from_id, edges in adjacency:
                self._edges[from_id] = edges

        logger.info(f"Knowledge graph imported: {len(nodes)} nodes, {sum(len(e) for _, e in adjacency)} edges")
