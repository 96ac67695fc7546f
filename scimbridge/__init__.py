"""
scimbridge
==========
Provisioning bridge between a generic directory-object model and a REST
identity directory exposing SCIM-like ``/Users`` and ``/Groups`` endpoints.

The package is organised as:
    core      - configuration, logging, errors and the connector session
    models    - generic attribute objects and pydantic resource models
    schema    - declarative field descriptors and the mapping engine
    scim      - the paginated REST client and HTTP status classification
    handlers  - per resource type field tables and operations
"""

__version__ = "1.0.0"
