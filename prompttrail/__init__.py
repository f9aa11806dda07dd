"""
PromptTrail: a privacy-first record of AI-assisted coding sessions.

Interactions with coding assistants are grouped into bounded sessions. When a
commit lands, the session is correlated with it, scrubbed of credentials and
sensitive file contents, and handed to persistence.

Layers (bottom to top):
    1. Privacy (secret redaction, sensitive-path classification, sanitization)
    2. Session quality (adaptive inactivity timeouts, insights)
    3. Session monitor (lifecycle, correlation)
    4. Storage (local summary store)
"""

__version__ = "0.1.0"
