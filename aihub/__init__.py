"""AI Hub: catalog of AI services with automated discovery."""
