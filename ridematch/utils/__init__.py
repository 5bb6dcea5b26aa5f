"""Ride Match Utilities"""
