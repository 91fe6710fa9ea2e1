from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO, Iterator

import numpy as np

from data_structures.binary_io import (
    ForestFormatError,
    read_f64,
    read_f64_array,
    read_u8,
    read_u32,
    write_f64,
    write_f64_array,
    write_u8,
    write_u32,
)
from data_structures.histogram import HistogramAggregator
from feature_responses import FeatureResponse, read_feature_response

LEAF_TAG = 0
SPLIT_TAG = 1


@dataclass
class Node:
    depth: int
    sample_count: int
    feature: FeatureResponse | None = None
    threshold: float | None = None
    gain: float = 0.0
    left: int | None = None
    right: int | None = None
    distribution: np.ndarray | None = None
    # Only present on trees built in this process.
    statistics: HistogramAggregator | None = None

    @property
    def is_leaf(self) -> bool:
        return self.feature is None


class Tree:
    """Decision tree stored as a node arena in depth-first preorder.

    Internal nodes refer to their children by arena index; ``nodes[0]`` is
    the root.
    """

    def __init__(self, nodes: list[Node], n_classes: int) -> None:
        if not nodes:
            raise ValueError("a tree needs at least a root node")
        self.nodes = nodes
        self.n_classes = int(n_classes)

    @property
    def root(self) -> Node:
        return self.nodes[0]

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def children(self, node: Node) -> tuple[Node, Node]:
        if node.is_leaf:
            raise ValueError("leaf nodes have no children")
        return self.nodes[node.left], self.nodes[node.right]

    def leaves(self) -> Iterator[Node]:
        return (node for node in self.nodes if node.is_leaf)

    def split_nodes(self) -> Iterator[Node]:
        return (node for node in self.nodes if not node.is_leaf)

    def max_depth(self) -> int:
        return max(node.depth for node in self.nodes)

    def preorder(self) -> Iterator[Node]:
        stack = [0]
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            if not node.is_leaf:
                stack.append(node.right)
                stack.append(node.left)

    def serialize(self, sink: BinaryIO) -> None:
        write_u32(sink, self.node_count)
        for node in self.preorder():
            if node.is_leaf:
                write_u8(sink, LEAF_TAG)
                write_u32(sink, node.sample_count)
                write_f64_array(sink, node.distribution)
            else:
                write_u8(sink, SPLIT_TAG)
                write_u32(sink, node.sample_count)
                node.feature.serialize(sink)
                write_f64(sink, node.threshold)

    @classmethod
    def deserialize(cls, source: BinaryIO, n_classes: int) -> Tree:
        n_nodes = read_u32(source)
        if n_nodes == 0:
            raise ForestFormatError("tree record has no nodes")

        nodes: list[Node] = []
        # (parent index, is_left) for children still to be read
        pending: list[tuple[int, bool]] = []

        for index in range(n_nodes):
            if index > 0 and not pending:
                raise ForestFormatError("tree record has nodes after a complete tree")

            depth = 0
            if pending:
                parent_index, is_left = pending.pop()
                parent = nodes[parent_index]
                depth = parent.depth + 1
                if is_left:
                    parent.left = index
                else:
                    parent.right = index

            tag = read_u8(source)
            sample_count = read_u32(source)
            if tag == LEAF_TAG:
                distribution = read_f64_array(source, n_classes)
                nodes.append(Node(depth=depth, sample_count=sample_count, distribution=distribution))
            elif tag == SPLIT_TAG:
                feature = read_feature_response(source)
                threshold = read_f64(source)
                nodes.append(
                    Node(
                        depth=depth,
                        sample_count=sample_count,
                        feature=feature,
                        threshold=threshold,
                    )
                )
                pending.append((index, False))
                pending.append((index, True))
            else:
                raise ForestFormatError(f"Unknown node tag: {tag}")

        if pending:
            raise ForestFormatError("tree record ended before all children were read")

        return cls(nodes, n_classes)
