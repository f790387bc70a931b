"""Health record query engine: paginated retrieval and calendar-bucketed aggregation."""
