############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Root package initialization and version definition
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Blog Hut - community blogging platform."""

__version__ = "1.0.0"
