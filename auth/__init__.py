"""
Authentication package for the Flask app.

This package implements sign-in against a Microsoft Entra External ID (CIAM)
tenant via MSAL, using the OAuth2 Authorization Code Flow with PKCE. The
provider in `provider.py` sequences the flow; MSAL does the protocol work.
"""
