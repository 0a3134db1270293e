"""Path executors: one per routing path, plus the similar-author lookup."""

from bookrouter.services.paths.catalog_path import CatalogPath
from bookrouter.services.paths.hybrid_path import HybridPath
from bookrouter.services.paths.similar_author_path import SimilarAuthorPath
from bookrouter.services.paths.temporal_path import TemporalPath
from bookrouter.services.paths.world_path import WorldPath

__all__ = ["CatalogPath", "HybridPath", "SimilarAuthorPath", "TemporalPath", "WorldPath"]
