"""Opportunity Board API."""
