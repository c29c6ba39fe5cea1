"""Re-embed and re-upsert stored documents.

Repairs partial ingests (metadata without a vector) and migrates vectors
after an embedder change. With no ids, every stored document is reindexed.

Usage:
    python scripts/reindex.py [ID ...] [--namespace NS]
"""
import argparse
import asyncio

from dotenv import load_dotenv
load_dotenv()

from multilang_tutor.api.dependencies import get_engine, get_indexer, get_metadata_store
from multilang_tutor.db import KIND_DOCUMENT


async def all_document_ids(page_size: int = 100):
    store = get_metadata_store()
    ids, token = [], None
    while True:
        page = await store.scan(kind=KIND_DOCUMENT, limit=page_size, start_after=token)
        ids.extend(item["id"] for item in page.items)
        if page.next_token is None:
            return ids
        token = page.next_token


async def main(args):
    ids = args.ids or await all_document_ids()
    if not ids:
        print("Nothing to reindex.")
        return

    print(f"Reindexing {len(ids)} documents...")
    result = await get_indexer().reindex(ids, args.namespace)
    print(f"Reindexed {result.count} documents.")
    await get_engine().dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("ids", nargs="*")
    parser.add_argument("--namespace", default=None)
    asyncio.run(main(parser.parse_args()))
