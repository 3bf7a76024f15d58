"""Backend services for ticket checkout and payment reconciliation.

Modules are imported directly (``from ticketing.services.catalog import ...``)
rather than re-exported here, since several of them import ``ticketing.config``
and the config module imports the SSM service from this package.
"""
