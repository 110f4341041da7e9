"""Domain packages of WorkGuard."""
