"""
ACC Leaderboard

Imports Assetto Corsa Competizione server result files into a relational
store and computes per-track leaderboards from them.
"""

__version__ = '1.0.0'
