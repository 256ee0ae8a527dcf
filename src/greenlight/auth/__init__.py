"""Authentication and authorization.

Three pieces, leaves first:
1. password — bcrypt credential for email/password login
2. tokens — opaque 26-character bearer tokens, stored as SHA-256 hashes
3. dependencies — the per-request authenticator and the activation /
   permission gates, exposed as FastAPI dependencies
"""
