"""projects/ -- Ownership-scoped project persistence for Conlang Studio.

Layer rule: projects/ imports only core/ plus third-party libraries.
It does NOT import from api/, web/, auth/, or tracker/.
"""
