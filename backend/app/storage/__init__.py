############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Storage package exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Storage utilities for Blog Hut."""

from backend.app.storage.uploads import AVATAR, POST_IMAGE, ImageStorage, get_image_storage

__all__ = ["AVATAR", "POST_IMAGE", "ImageStorage", "get_image_storage"]
