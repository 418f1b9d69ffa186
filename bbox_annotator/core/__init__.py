"""Editing core of the annotator."""
