"""Runtime checks of solved roofs."""
