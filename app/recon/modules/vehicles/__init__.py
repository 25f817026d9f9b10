"""
Vehicles module (minimal): the record that owns inspection data and team notes.
"""
