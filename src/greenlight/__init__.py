"""Greenlight — JSON API for a movie catalog.

Users register, activate their account from an emailed token, trade their
password for a bearer token, and read or edit movies according to the
permissions granted to them. Writes to movies are guarded by optimistic
concurrency on a version column.
"""

__version__ = "1.0.0"
