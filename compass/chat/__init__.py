"""Assistant chat: frame decoder, transcript store, session controller, mode lifecycle."""
