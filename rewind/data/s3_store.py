"""S3 storage for raw match and timeline payloads"""
import asyncio
import gzip
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

import boto3
from botocore.exceptions import ClientError, NoCredentialsError

from rewind.utils.config import (
    S3_ACCESS_KEY,
    S3_BUCKET_NAME,
    S3_ENDPOINT_URL,
    S3_REGION,
    S3_SECRET_KEY,
)
from rewind.utils.rewind_logging import get_fallback_logger, log

RAW_MATCHES_PREFIX = "raw/matches"
RAW_TIMELINES_PREFIX = "raw/timelines"
SCHEMA_VERSION = 1


class MatchStorage(Protocol):
    async def put(self, key: str, payload: Dict[str, Any]) -> str: ...


def _partition(season: int, patch_bucket: str, queue: int, match_id: str) -> str:
    return f"season={season}/patch={patch_bucket}/queue={queue}/matchId={match_id}.jsonl.gz"


def match_key(season: int, patch_bucket: str, queue: int, match_id: str) -> str:
    return f"{RAW_MATCHES_PREFIX}/{_partition(season, patch_bucket, queue, match_id)}"


def timeline_key(season: int, patch_bucket: str, queue: int, match_id: str) -> str:
    return f"{RAW_TIMELINES_PREFIX}/{_partition(season, patch_bucket, queue, match_id)}"


def gz_line(obj: Any) -> bytes:
    """One gzipped JSON line, the Bronze layer format Athena reads."""
    return gzip.compress((json.dumps(obj, separators=(",", ":")) + "\n").encode("utf-8"))


def build_match_record(match_id: str, info: Dict[str, Any], season: int, patch: str, queue: int,
                       source: str = "riot-api") -> Dict[str, Any]:
    return {
        "matchId": match_id,
        "season": season,
        "patch": patch,
        "queue": queue,
        "info": info,
        "schemaVersion": SCHEMA_VERSION,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "source": source,
    }


def build_timeline_record(match_id: str, frames: list, source: str = "riot-api") -> Dict[str, Any]:
    return {
        "matchId": match_id,
        "frames": frames if isinstance(frames, list) else [],
        "schemaVersion": SCHEMA_VERSION,
        "exportedAt": datetime.now(timezone.utc).isoformat(),
        "source": source,
    }


class MatchS3Store:
    """S3 storage manager for raw match documents. Overwrites are idempotent."""

    def __init__(self, bucket_name: Optional[str] = None, s3_client=None):
        self.endpoint_url = S3_ENDPOINT_URL
        self.bucket_name = bucket_name or S3_BUCKET_NAME
        self.logger = get_fallback_logger()

        self.s3_client = s3_client or boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=S3_ACCESS_KEY or None,
            aws_secret_access_key=S3_SECRET_KEY or None,
            region_name=S3_REGION,
        )

    def ensure_bucket_exists(self):
        """Create bucket if it doesn't exist"""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code not in (404, "404", "NoSuchBucket"):
                raise
            try:
                self.s3_client.create_bucket(Bucket=self.bucket_name)
                log.info(self.logger, "s3", "bucket_created", "Created S3 bucket", bucket=self.bucket_name)
            except ClientError as create_error:
                # Another worker created it first
                if "BucketAlreadyOwnedByYou" not in str(create_error):
                    raise
        except NoCredentialsError as e:
            log.error(self.logger, "s3", "no_credentials", "S3 credentials not configured",
                      error=str(e), error_type=type(e).__name__)
            raise

    def put_sync(self, key: str, payload: Dict[str, Any]) -> str:
        self.s3_client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=gz_line(payload),
            ContentType="application/json",
            ContentEncoding="gzip",
        )
        return key

    async def put(self, key: str, payload: Dict[str, Any]) -> str:
        """Write one object; boto3 is blocking so it runs in a thread."""
        return await asyncio.to_thread(self.put_sync, key, payload)
