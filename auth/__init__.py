"""auth/ -- Authentication package for pagedesk.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and the
shared store/ DocumentStore. It does NOT import from api/ or catalog/.
api/ imports from auth/, not the other way around.
"""
