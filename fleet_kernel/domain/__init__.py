"""Pure domain layer: values, clock, and result DTOs (no I/O)."""
