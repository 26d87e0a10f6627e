"""Command-line interface for bridgeswap."""
