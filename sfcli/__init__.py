"""Project environment variables, .env and Composer inspection, cloud templates and book tooling."""

__version__ = "0.1.0"