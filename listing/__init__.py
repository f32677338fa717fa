"""Listing API - catalog queries and product media consistency.

Resolves filter/search/category requests into store queries and keeps each
product's image set consistent with the external object store across
create, update and delete.
"""

__version__ = "0.1.0"
