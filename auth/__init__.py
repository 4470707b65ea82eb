"""auth/ -- Authentication and authorization package for Roster.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/; configuration values are passed in
by constructors. api/ and main.py import from auth/, not the other way around.
"""
