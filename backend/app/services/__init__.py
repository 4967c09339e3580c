############################################################
#
# bloghut - Community Blogging Platform
#
# __init__.py: Service layer package
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Services for Blog Hut."""
