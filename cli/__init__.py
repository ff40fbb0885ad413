"""Command-line front ends for rangetreex."""
