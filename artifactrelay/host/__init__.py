"""Reference host: jobs, builds, manifests and step configurations."""

from artifactrelay.host.catalog import CatalogData, HostCatalog

__all__ = ["CatalogData", "HostCatalog"]
