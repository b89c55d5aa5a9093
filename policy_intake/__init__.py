"""Policy document intake and verification service."""
