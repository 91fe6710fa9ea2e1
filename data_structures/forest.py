from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import BinaryIO

from data_structures.binary_io import (
    ForestFormatError,
    read_u32,
    write_u32,
)
from data_structures.tree import Tree

logger = logging.getLogger(__name__)

MAGIC = b"SHFOREST"
FORMAT_VERSION = 1


class Forest:
    """Ensemble of trained trees, appended in completion order."""

    def __init__(self, n_classes: int, dimensions: int) -> None:
        self.n_classes = int(n_classes)
        self.dimensions = int(dimensions)
        self._trees: list[Tree] = []
        self._lock = threading.Lock()

    @property
    def trees(self) -> tuple[Tree, ...]:
        return tuple(self._trees)

    def __len__(self) -> int:
        return len(self._trees)

    def add_tree(self, tree: Tree) -> None:
        if tree.n_classes != self.n_classes:
            raise ValueError("tree and forest disagree on the number of classes")
        with self._lock:
            self._trees.append(tree)

    def serialize(self, sink: BinaryIO) -> None:
        sink.write(MAGIC)
        write_u32(sink, FORMAT_VERSION)
        write_u32(sink, self.n_classes)
        write_u32(sink, self.dimensions)
        trees = self.trees
        write_u32(sink, len(trees))
        for tree in trees:
            tree.serialize(sink)

    def save(self, path: str | Path) -> None:
        path = Path(path)
        with path.open("wb") as sink:
            self.serialize(sink)
        logger.info("Saved forest with %d trees to %s", len(self), path)

    @classmethod
    def deserialize(cls, source: BinaryIO) -> Forest:
        magic = source.read(len(MAGIC))
        if magic != MAGIC:
            raise ForestFormatError("not a serialized forest (bad magic)")
        version = read_u32(source)
        if version != FORMAT_VERSION:
            raise ForestFormatError(f"unsupported forest format version {version}")

        n_classes = read_u32(source)
        dimensions = read_u32(source)
        n_trees = read_u32(source)

        forest = cls(n_classes=n_classes, dimensions=dimensions)
        for _ in range(n_trees):
            forest.add_tree(Tree.deserialize(source, n_classes))
        return forest

    @classmethod
    def load(cls, path: str | Path) -> Forest:
        with Path(path).open("rb") as source:
            return cls.deserialize(source)
