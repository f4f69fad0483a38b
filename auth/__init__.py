"""auth/ -- Authentication, session lifecycle, and authorization for the E-Learning API.

Layer rule: auth/ never imports from api/. api/ imports from auth/, not the
other way around. auth/service.py is the one module that reaches into cache/,
mail/, and media/; everything else in auth/ depends only on core/ and
third-party libraries.
"""
