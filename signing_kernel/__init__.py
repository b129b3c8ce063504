"""
Signing Kernel - contract lifecycle and electronic-signature core.

Owns contract status, verification tokens, document integrity hashes and
the append-only audit trail. Outer layers (signing_services, scripts)
orchestrate collaborators such as email delivery and PDF rendering.
"""

__version__ = "0.1.0"
