"""Command-line front end for p4scm."""
