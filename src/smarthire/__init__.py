"""SmartHire recruiting assistant server."""
