# app/core/s3.py
import logging
from typing import Dict, Optional

import boto3
from app.core.config import settings

logger = logging.getLogger(__name__)


def get_s3_client():
    """
    Initializes and returns an S3 client.
    Conditionally configures the endpoint_url for local development with MinIO.
    """
    # If the endpoint URL is set in the environment (for MinIO), use it.
    if settings.AWS_S3_ENDPOINT_URL:
        return boto3.client(
            "s3",
            endpoint_url=settings.AWS_S3_ENDPOINT_URL,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_S3_REGION,
        )
    # Otherwise, it will default to the standard AWS endpoint for production.
    else:
        return boto3.client(
            "s3",
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            region_name=settings.AWS_S3_REGION,
        )


def is_s3_configured() -> bool:
    return bool(settings.AWS_S3_BUCKET_NAME)


def put_object(
    key: str,
    body: bytes,
    *,
    content_type: str = "application/octet-stream",
    content_encoding: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
    s3_client=None,
) -> Optional[str]:
    """
    Upload bytes to the configured bucket.

    Returns the object key, or None when no bucket is configured.
    botocore ClientError / BotoCoreError propagate to the caller.
    """
    if not is_s3_configured():
        logger.warning("S3 bucket not configured, skipping upload of %s", key)
        return None

    client = s3_client or get_s3_client()
    extra = {}
    if content_encoding:
        extra["ContentEncoding"] = content_encoding
    if metadata:
        extra["Metadata"] = metadata

    client.put_object(
        Bucket=settings.AWS_S3_BUCKET_NAME,
        Key=key,
        Body=body,
        ContentType=content_type,
        **extra,
    )
    logger.info(f"Uploaded {len(body)} bytes to s3://{settings.AWS_S3_BUCKET_NAME}/{key}")
    return key
