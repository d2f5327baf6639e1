"""Test package marker for the mailview suites.

What:
  Marks ``tests`` as a package so ``tests/conftest.py`` is imported once and
  its ``sys.path`` setup applies to ``tests/unit`` as well.

Invariants & Safety:
  - Importing ``tests`` has no side effects beyond the conftest path setup.
"""
