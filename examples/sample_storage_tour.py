"""Minimal tour of the s3clone SDK against a running storage service.

This script demonstrates how to:

1. Load settings from the repo-root `.env` file (expects `S3CLONE_BASE_URL` and `S3CLONE_API_KEY`).
2. Create a bucket, upload a local file and download it again.
3. Do the same concurrently with the asyncio client.

Run with:
    python sample_storage_tour.py path/to/file
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import s3clone.sdk as s3
from s3clone.sdk.models import CreateBucketInput


def blocking_tour(path: Path) -> str:
    with s3.StorageClient.from_environment() as client:
        bucket = client.buckets.create(CreateBucketInput(name="sdk-tour"))
        print(f"✓ Created bucket {bucket.name} ({bucket.bucket_id})")

        info = client.files.upload(bucket.bucket_id, path)
        print(f"✓ Uploaded {info.key}: {info.size} bytes, {info.mime_type}")

        data = client.files.download(bucket.bucket_id, info.file_id)
        assert data == path.read_bytes()
        print("✓ Downloaded content matches the local file")
        return bucket.bucket_id


async def async_tour(bucket_id: str, path: Path) -> None:
    async with s3.AsyncStorageClient.from_environment() as client:
        uploads = await asyncio.gather(
            *(client.files.upload(bucket_id, path, filename=f"copy-{i}{path.suffix}") for i in range(5))
        )
        print(f"✓ Uploaded {len(uploads)} copies concurrently")

        for info in await client.files.list(bucket_id):
            print(f"  • {info.key:<24} {info.size:>10} bytes")


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) != 2:
        sys.exit("usage: python sample_storage_tour.py FILE")

    s3.load_dotenv_for_sdk(Path(__file__).parent.parent / ".env")
    path = Path(sys.argv[1])

    try:
        bucket_id = blocking_tour(path)
        asyncio.run(async_tour(bucket_id, path))
    except s3.ApiError as exc:
        details = exc.details
        reason = (details.error or details.message) if details else exc.body
        sys.exit(f"✗ {exc.kind.value}: {reason}")


if __name__ == "__main__":
    main()
