############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Database package initialization and exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Database package for Blog Hut."""

from backend.app.db.base import Base
from backend.app.db.session import (
    AsyncSessionLocal,
    engine,
    get_async_db,
    get_async_db_context,
    init_db,
)

__all__ = [
    "Base",
    "AsyncSessionLocal",
    "engine",
    "get_async_db",
    "get_async_db_context",
    "init_db",
]
