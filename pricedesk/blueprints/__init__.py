"""HTTP blueprints. Each package exposes one Blueprint; routes live in routes.py."""
