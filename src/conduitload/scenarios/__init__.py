"""Bundled Conduit load test scripts, runnable by name (``conduitload run load``)."""

# Display order for ``conduitload list``.
CATALOG = ("smoke", "api", "load", "stress", "spike", "volume", "soak")

# Lightest to heaviest; each step assumes the previous one passed.
RECOMMENDED_SEQUENCE = ("api", "load", "stress", "spike", "volume", "soak")
