"""appharvest: app marketplace harvester.

Public API surface; import submodules directly for full access:
  appharvest.config.settings       paths, URLs, crawl limits
  appharvest.config.tuning         retry policies for enrich / recover
  appharvest.crawl.paginate        per-category pagination
  appharvest.enrich.enricher       concurrent launch-date enrichment
  appharvest.enrich.recovery       checkpointed second pass
  appharvest.storage.snapshot      JSON snapshot read / write
  appharvest.app.cli               CLI entry point
"""

from .models import Category, ListingRecord, EnrichedRecord
from .storage.snapshot import load_listings, load_enriched, save_snapshot
from .ingestion.orchestrator import (
    run_crawl_stage,
    run_enrich_stage,
    run_recovery_stage,
)


def main(argv=None):
    """CLI entry point."""
    from .app.main import main as _main
    return _main(argv)


__all__ = [
    "Category",
    "ListingRecord",
    "EnrichedRecord",
    "load_listings",
    "load_enriched",
    "save_snapshot",
    "run_crawl_stage",
    "run_enrich_stage",
    "run_recovery_stage",
    "main",
]
