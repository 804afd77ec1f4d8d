"""
ACL group administration feature module.

Groups carry a set of (resource, name) permissions declared by the route
handlers; users belong to exactly one group.
"""
