"""Console presentation for the shopmon CLI."""
