"""Bulk-ingest a directory of text files as learning material.

Usage:
    python scripts/index_materials.py DIR [--language english] [--type grammar] [--namespace default]

Each file becomes one document. The file's path relative to DIR is used as
its id, so re-running the script replaces earlier vectors and metadata.
Run it against the pinecone backend; the FAISS index only lives inside a
running server process.
"""
import argparse
import asyncio
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

from multilang_tutor.api.dependencies import get_engine, get_indexer
from multilang_tutor.db import create_tables
from multilang_tutor.models import Document


def collect_documents(root: Path, language: str, doc_type: str, min_length: int = 20):
    documents = []
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix.lower() not in {".txt", ".md"}:
            continue
        text = path.read_text(encoding="utf-8").strip()
        # Skip very short content
        if len(text) < min_length:
            print(f"Skipping {path} (too short)")
            continue
        documents.append(Document(
            id=f"material_{path.relative_to(root).as_posix()}",
            content=text,
            language=language,
            type=doc_type,
            source="learning_material",
        ))
    return documents


async def main(args):
    print("Initializing clients...")
    await create_tables(get_engine())
    indexer = get_indexer()

    documents = collect_documents(Path(args.directory), args.language, args.type)
    if not documents:
        print("No documents to index.")
        return

    print(f"Found {len(documents)} documents. Creating embeddings...")
    batch_size = args.batch_size
    for i in range(0, len(documents), batch_size):
        batch = documents[i:i + batch_size]
        print(f"Ingesting batch {i}-{i + len(batch)}...")
        result = await indexer.ingest(batch, args.namespace)
        print(f"  indexed {result.count}")

    await get_engine().dispose()
    print("Done! Index updated.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("directory")
    parser.add_argument("--language", default="english")
    parser.add_argument("--type", default="general")
    parser.add_argument("--namespace", default=None)
    parser.add_argument("--batch-size", type=int, default=25)
    asyncio.run(main(parser.parse_args()))
