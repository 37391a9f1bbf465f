"""Database module."""

from db.cosmos_session import close_cosmos, get_container, init_cosmos

__all__ = ["get_container", "init_cosmos", "close_cosmos"]
