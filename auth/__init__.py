"""auth/ -- Credentials, password hashing, and sessions for Conlang Studio.

Layer rule: auth/ imports only core/, stdlib, and third-party libraries.
It does NOT import from api/, web/, projects/, or tracker/.
api/ and web/ import from auth/, not the other way around.
"""
