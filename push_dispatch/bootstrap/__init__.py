"""Bootstrap wiring: database, logging and dispatch dependencies."""
