"""Reannotation pipeline: collaborators, column merge, assembly and the staleness cache."""
