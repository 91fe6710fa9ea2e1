"""
Data structures for randomized decision forests.

Label histograms, arena-backed trees and the forest container, together with
the little-endian primitives used by the forest artifact format.
"""
