"""
Raw Mesh Writer
===============

Writes a single-part mesh as two tab separated text files:

    <base>-nodes.txt     id  x  y  z
    <base>-elements.txt  id  n1 n2 ... n8
"""

from pathlib import Path
from typing import Tuple, Union

import numpy as np

from keyfile_errors import InconsistentDatabaseError
from mesh_database import MeshDatabase

# 17 significant digits round-trip any float64
COORD_FORMAT = "%.17g"


def output_paths(base: Union[str, Path]) -> Tuple[Path, Path]:
    """Node and element file paths for an output base name"""
    base = str(base)
    return Path(f"{base}-nodes.txt"), Path(f"{base}-elements.txt")


def write_part(base: Union[str, Path], part: MeshDatabase) -> Tuple[Path, Path]:
    """Write the node and element files of one part mesh

    Args:
        base: Output base name, typically ``<output>-<part name>``
        part: Mesh whose elements all share one part id

    Returns:
        Paths of the node file and the element file

    Raises:
        InconsistentDatabaseError: If the elements belong to more than one part
    """
    part_ids = part.part_ids()
    if len(part_ids) > 1:
        raise InconsistentDatabaseError(
            f"cannot write a single part mesh containing parts {part_ids}")

    nodes_path, elements_path = output_paths(base)

    table = np.column_stack([part.node_ids().astype(np.float64), part.node_array()])
    np.savetxt(nodes_path, table, fmt=["%d"] + [COORD_FORMAT] * 3, delimiter="\t")

    # Drop the part id column; every row shares it
    table = np.delete(part.element_array(), 1, axis=1)
    np.savetxt(elements_path, table, fmt="%d", delimiter="\t")

    return nodes_path, elements_path
