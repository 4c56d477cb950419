"""polyschema command line interface."""
