"""CSF Compass interaction core.

Subpackages:
- chat: frame decoding, transcripts, streaming sessions, assistant mode lifecycle
- items: shared assessment items, optimistic mutations, notes debouncing
- providers: network transports for the chat stream and item endpoints (+ mocks)
"""

__version__ = "0.1.0"
