"""State/store layer.

This package is the single owner of the cached camera collection and
the only place where a new snapshot is compared against prior state.
"""
