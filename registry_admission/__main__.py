"""Entry point for running the registry admission service as a module."""

from .server import main

if __name__ == "__main__":
    main()
