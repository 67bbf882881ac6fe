"""Kernel: contract model, command executor and session wiring."""
