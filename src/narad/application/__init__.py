"""Session/analytics engine and the service container that wires it."""
