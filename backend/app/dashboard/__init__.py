############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Server-rendered web interface package
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Server-rendered pages for Blog Hut."""
