"""auth/ -- Authentication and authorization package for the Results API.

Layer rule: auth/ imports only core/, stdlib and third-party libraries.
It does NOT import from api/, results/, or services/.
api/ and services/ import from auth/, not the other way around.
"""
