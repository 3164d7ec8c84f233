"""
TreeReconcile: reconcile a source folder tree against its migrated copy.
"""

__version__ = "1.0.0"
