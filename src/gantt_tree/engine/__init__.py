"""Task hierarchy engines.

``ordering`` owns sibling positions, ``split`` turns leaves into containers,
``deleter`` removes subtrees with their links and assignments, and
``service`` exposes all of it behind one lock.
"""
