"""FHIR Patient Resource Service.

Exposes patient demographic records through a FHIR R4 Patient interface with
search, read, create, update, delete and the ``$everything`` export.
"""

__version__ = "1.0.1"
