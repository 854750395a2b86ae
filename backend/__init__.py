"""
HTTP host for drowsiness-guard.
"""
