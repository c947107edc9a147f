"""
Accounts module.

Only the user record the inventory core needs: identity, role and the
active flag. Login and password management live in the wider platform.
"""
