"""
Core data-access components.

Identity generation, collection catalog, document store, batch engine, query
translator, search engine and the DataService facade that ties them together.
Import DataService from ``docbridge`` or ``docbridge.core.service``.
"""
