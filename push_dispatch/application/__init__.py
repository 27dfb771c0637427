"""Application layer - ports, DTOs and services of the dispatch pipeline."""
