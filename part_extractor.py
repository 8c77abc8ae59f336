"""
Part Extraction and Renumbering
===============================

Turns the combined mesh database into self-contained per-part meshes.

``extract_part`` copies the elements of one part (global order preserved)
together with exactly the nodes they reference, in first-encounter order.
``renumber`` then relabels nodes and elements 1..N / 1..M in that order, so
the result no longer depends on the global numbering of the input files.
A node shared by two parts appears in both extracted meshes.
"""

import logging
from typing import Dict, Iterable, Iterator, Optional, Tuple

from keyfile_errors import InconsistentDatabaseError
from mesh_database import UNUSED_SLOT, Element, MeshDatabase, Node

logger = logging.getLogger(__name__)


def extract_part(db: MeshDatabase, pid: int) -> MeshDatabase:
    """Copy the elements of part ``pid`` and the nodes they reference

    Args:
        db: Combined database built by the parser
        pid: Part id to extract

    Returns:
        New database holding only that part; the part name is carried over

    Raises:
        InconsistentDatabaseError: If an element references a node id that
            is not in ``db``
    """
    part = MeshDatabase()
    if pid in db.part_names:
        part.record_part_name(pid, db.part_names[pid])

    for element in db.iter_elements():
        if element.part_id != pid:
            continue
        for node_id in element.node_refs():
            if node_id in part.node_index:
                continue
            node = db.lookup_node(node_id)
            if node is None:
                raise InconsistentDatabaseError(
                    f"element {element.id} of part {pid} references node "
                    f"{node_id}, which is not defined")
            part.insert_node(node)
        part.insert_element(element)

    return part


def renumber(part: MeshDatabase) -> MeshDatabase:
    """Relabel nodes and elements of an extracted part densely from 1

    Node ``k`` (1-based position in the current node order) gets id ``k``;
    element slots are rewritten through the same mapping with 0 kept as 0.
    Elements get ids 1..M in their current order; part ids are unchanged.
    """
    remap: Dict[int, int] = {UNUSED_SLOT: UNUSED_SLOT}
    for new_id, node in enumerate(part.iter_nodes(), start=1):
        remap[node.id] = new_id

    result = MeshDatabase()
    for pid, name in part.iter_parts():
        result.record_part_name(pid, name)

    for node in part.iter_nodes():
        result.insert_node(Node(remap[node.id], node.x, node.y, node.z))

    for new_id, element in enumerate(part.iter_elements(), start=1):
        try:
            slots = tuple(remap[node_id] for node_id in element.nodes)
        except KeyError as e:
            raise InconsistentDatabaseError(
                f"element {element.id} references node {e.args[0]}, "
                "which is not part of the extracted mesh") from None
        result.insert_element(Element(new_id, element.part_id, slots))

    return result


def extract_all(db: MeshDatabase,
                part_ids: Optional[Iterable[int]] = None
                ) -> Iterator[Tuple[int, str, MeshDatabase]]:
    """Yield ``(pid, name, renumbered part mesh)`` for each requested part

    Parts are visited in order of first appearance among the elements
    unless ``part_ids`` gives an explicit order.
    """
    if part_ids is None:
        part_ids = db.part_ids()
    for pid in part_ids:
        part = renumber(extract_part(db, pid))
        logger.info("Part %d '%s': %d nodes, %d elements",
                    pid, db.part_name(pid), part.node_count, part.element_count)
        yield pid, db.part_name(pid), part
