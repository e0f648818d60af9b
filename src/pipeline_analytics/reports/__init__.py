"""Metric aggregators: pure functions over reconstructed timelines or one batch of snapshots."""
