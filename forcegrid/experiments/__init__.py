"""Experiment orchestration: settings, sequential test runner and result export.

Builds the configuration space from the parameter axes, settles each configuration
with the layout simulator one at a time and scores it with the metrics engine.
"""
