"""
Sherwood Forest

Trains ensembles of randomized binary decision trees for multi-class
classification and writes them to a compact binary artifact.

Each tree is grown by recursive binary partitioning: at every node a number
of randomly parameterized weak learners (axis-aligned, random hyperplane or
standardized random hyperplane) are drawn, candidate thresholds are sampled
from their responses, and the split with the largest information gain wins.
Trees are independent and can be trained on a pool of worker threads.
"""
