"""hubpack command line interface."""
