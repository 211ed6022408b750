"""
Permission management feature module.

Two independent tiers decide whether a user may run an operation:
a feature grant (may the user use this capability at all?) and a school
grant (may the user act on this school?). The ADMIN role bypasses both.
"""
