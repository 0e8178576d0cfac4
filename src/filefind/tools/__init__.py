"""
Search tools for filefind.

This module contains the traversal engine, the predicate evaluator and the
execution strategies that combine them.
"""
