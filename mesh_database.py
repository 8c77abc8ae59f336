"""
Mesh Database
=============

In-memory store for the nodes, elements and part names read from one or
more keyfiles. Nodes and elements live in append-only lists; all cross
references are integer ids resolved through the id -> position indices,
so lookups are O(1) and the store holds no object links between entities.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from keyfile_errors import DuplicateElementIdError, KeyfileWarning

logger = logging.getLogger(__name__)

NODES_PER_ELEMENT = 8

# Connectivity slot value meaning "no node in this slot"
UNUSED_SLOT = 0


@dataclass(frozen=True)
class Node:
    """Mesh node with its externally supplied id"""
    id: int
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class Element:
    """Mesh element; ``nodes`` always holds exactly 8 slots, 0 = unused"""
    id: int
    part_id: int
    nodes: Tuple[int, ...]

    def node_refs(self) -> Iterator[int]:
        """Yield the used node ids in slot order"""
        for node_id in self.nodes:
            if node_id != UNUSED_SLOT:
                yield node_id


class MeshDatabase:
    """Nodes, elements and part names with id -> position indices

    The database may be filled from several keyfiles in sequence; element id
    uniqueness holds across everything inserted into one instance.

    Usage:
        >>> db = MeshDatabase()
        >>> db.insert_node(Node(1, 0.0, 0.0, 1.5))
        >>> db.lookup_node(1).z
        1.5
    """

    def __init__(self):
        self.nodes: List[Node] = []
        self.elements: List[Element] = []
        self.node_index: Dict[int, int] = {}
        self.element_index: Dict[int, int] = {}
        self.part_names: Dict[int, str] = {}

    def __repr__(self) -> str:
        return (f"MeshDatabase(nodes={self.node_count}, "
                f"elements={self.element_count}, parts={len(self.part_names)})")

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def element_count(self) -> int:
        return len(self.elements)

    def insert_node(self, node: Node) -> None:
        """Append a node; a repeated id replaces the earlier node in place"""
        position = self.node_index.get(node.id)
        if position is not None:
            message = f"Node {node.id} defined twice; keeping the later definition"
            logger.warning(message)
            warnings.warn(message, KeyfileWarning)
            self.nodes[position] = node
            return
        self.node_index[node.id] = len(self.nodes)
        self.nodes.append(node)

    def insert_element(self, element: Element) -> None:
        """Append an element

        Raises:
            DuplicateElementIdError: If the element id is already indexed
            ValueError: If the element does not carry exactly 8 slots
        """
        if element.id in self.element_index:
            raise DuplicateElementIdError(element.id)
        if len(element.nodes) != NODES_PER_ELEMENT:
            raise ValueError(f"Element {element.id} has {len(element.nodes)} "
                             f"node slots, expected {NODES_PER_ELEMENT}")
        self.element_index[element.id] = len(self.elements)
        self.elements.append(element)

    def lookup_node(self, node_id: int) -> Optional[Node]:
        position = self.node_index.get(node_id)
        if position is None:
            return None
        return self.nodes[position]

    def lookup_element(self, element_id: int) -> Optional[Element]:
        position = self.element_index.get(element_id)
        if position is None:
            return None
        return self.elements[position]

    def record_part_name(self, pid: int, name: str) -> None:
        self.part_names[pid] = name

    def part_name(self, pid: int) -> str:
        """Name recorded for ``pid``, or ``part<pid>`` if it has no PART card"""
        return self.part_names.get(pid, f"part{pid}")

    def part_ids(self) -> List[int]:
        """Distinct element part ids in order of first appearance"""
        seen = {}
        for element in self.elements:
            seen.setdefault(element.part_id, None)
        return list(seen)

    def iter_nodes(self) -> Iterator[Node]:
        return iter(self.nodes)

    def iter_elements(self) -> Iterator[Element]:
        return iter(self.elements)

    def iter_parts(self) -> Iterator[Tuple[int, str]]:
        return iter(self.part_names.items())

    def node_ids(self) -> np.ndarray:
        """Node ids in storage order"""
        return np.array([n.id for n in self.nodes], dtype=np.int64)

    def node_array(self) -> np.ndarray:
        """Node coordinates as an (N, 3) float64 array in storage order"""
        coords = np.array([(n.x, n.y, n.z) for n in self.nodes], dtype=np.float64)
        return coords.reshape(-1, 3)

    def element_array(self) -> np.ndarray:
        """Elements as an (M, 10) int64 array of rows ``id, pid, n1..n8``"""
        rows = np.array([(e.id, e.part_id) + tuple(e.nodes) for e in self.elements],
                        dtype=np.int64)
        return rows.reshape(-1, 2 + NODES_PER_ELEMENT)
