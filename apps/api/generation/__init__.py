"""Clients for the external generation collaborators (steps, video, QR)."""
