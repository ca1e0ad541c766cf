"""
roadnav - shortest paths over networks of curved roads.

This package builds a navigation graph from Bezier roads joined at
intersections and turns shortest node paths back into smooth, oriented
point sequences.
"""

__version__ = "0.1.0"
