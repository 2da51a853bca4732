"""Router utilities."""
