"""Box Office SQL pipeline: load, normalize, store, classify and report on movies."""
