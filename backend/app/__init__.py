############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Application package initialization
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Blog Hut application package."""

from backend import __version__

__all__ = ["__version__"]
