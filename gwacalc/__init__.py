"""
gwacalc: GWA/GPA calculator with transcript image import.
"""
