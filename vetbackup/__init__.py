"""Backup and restore service for the vet clinic datastore."""

__version__ = "0.1.0"
__author__ = "Vet Clinic Project"
