"""Core infrastructure shared by the balancer, simulation and CLI."""
