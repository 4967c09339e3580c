############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Core application logic package
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Core helpers for Blog Hut: exceptions, validation and text utilities."""
