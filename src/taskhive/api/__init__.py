"""HTTP API for TaskHive."""
