"""CLI tools for bookrouter.

- ``python -m bookrouter.cli.recommend`` -- run the recommendation pipeline
  for one query and print the answer.
- ``python -m bookrouter.cli.ingest`` -- embed the catalog JSON file and load
  it into ChromaDB (or back into JSON); show catalog statistics.

All modules use argparse.  Heavy imports (providers, ChromaDB, the FastAPI
app) are deferred inside functions to keep simple commands fast.
"""
