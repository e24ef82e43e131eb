"""stepwise — health store accessor and metric aggregation engine."""

__version__ = "0.1.0"
