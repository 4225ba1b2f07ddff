"""holodeck command line: run, validate, info."""
