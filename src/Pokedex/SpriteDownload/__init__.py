"""
Pokedex sprite ingestion.

Two independent, re-runnable passes:

- the fetch pass (:func:`Pokedex.SpriteDownload.pipeline.run_download`)
  downloads one sprite per entity id with bounded concurrency and writes
  ``originals/``, ``thumbs/`` and ``meta/`` under an output directory;
- the load pass (:class:`Pokedex.SpriteDownload.catalog.CatalogLoader`)
  upserts those artifacts into the SQLite catalog.
"""

__version__ = "1.0.0"
