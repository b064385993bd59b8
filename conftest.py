"""Top-level pytest configuration.

Keeps the repository root importable so test modules can share helpers via
``tests.masterart.helpers``.
"""
