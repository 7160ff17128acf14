"""auth/ -- Sign-in and MFA verification flow.

Layer rule: auth/ imports from core/ and session/ only.
main.py imports from auth/, not the other way around.
"""
