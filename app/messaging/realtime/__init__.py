"""Realtime plumbing: room registry, push transport and the runtime that owns them."""
