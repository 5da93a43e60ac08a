"""List GitLab projects and groups with their IDs, as flat lists or as a tree."""

__version__ = "0.1.0"
__all__ = ["__version__"]