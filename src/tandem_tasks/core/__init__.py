"""Ports and application state shared by the store and clients."""
