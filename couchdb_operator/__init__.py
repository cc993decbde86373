"""
Kubernetes operator that provisions CouchDB clusters and joins their nodes.
"""

__version__ = "0.1.0"
