import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import boto3
from botocore.config import Config
from fastapi import HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from models import Admin, AdminLog

ID_PROOF_PREFIX = "identity-proofs"
ALLOWED_ID_PROOF_TYPES = {"image/png", "image/jpeg", "image/webp", "application/pdf"}


@dataclass(frozen=True)
class DocumentStore:
    region: str
    bucket: str
    access_key: str
    secret_key: str

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def _document_store() -> Optional[DocumentStore]:
    region = os.environ.get("AWS_REGION")
    bucket = os.environ.get("S3_BUCKET_NAME")
    access_key = os.environ.get("S3_ACCESS_KEY") or os.environ.get("AWS_ACCESS_KEY_ID")
    secret_key = os.environ.get("S3_SECRET_KEY") or os.environ.get("AWS_SECRET_ACCESS_KEY")
    if not (region and bucket and access_key and secret_key):
        return None
    return DocumentStore(region=region, bucket=bucket, access_key=access_key, secret_key=secret_key)


DOCUMENT_STORE = _document_store()
S3_CLIENT = None
if DOCUMENT_STORE:
    S3_CLIENT = boto3.client(
        "s3",
        region_name=DOCUMENT_STORE.region,
        aws_access_key_id=DOCUMENT_STORE.access_key,
        aws_secret_access_key=DOCUMENT_STORE.secret_key,
        endpoint_url=f"https://s3.{DOCUMENT_STORE.region}.amazonaws.com",
        config=Config(signature_version="s3v4", s3={"addressing_style": "virtual"}),
    )


def log_admin_action(db: Session, admin: Optional[Admin], action: str, method: Optional[str] = None, path: Optional[str] = None, meta: Optional[dict] = None):
    db.add(AdminLog(
        admin_id=admin.id if admin else None,
        admin_username=admin.username if admin else "",
        action=action,
        method=method,
        path=path,
        meta=meta
    ))
    db.commit()


def _document_key(url: Optional[str]) -> Optional[str]:
    if not url or DOCUMENT_STORE is None:
        return None
    parsed = urlparse(url)
    host = (parsed.netloc or "").lower()
    path = (parsed.path or "").lstrip("/")
    bucket = DOCUMENT_STORE.bucket.lower()
    if path and (host == f"{bucket}.s3.amazonaws.com" or host.startswith(f"{bucket}.s3.")):
        return unquote(path)
    return None


def presign_document_url(url: Optional[str], expires_in: int = 3600) -> Optional[str]:
    """Short-lived download link for a stored proof; foreign URLs pass through."""
    key = _document_key(url)
    if not key:
        return url
    if not S3_CLIENT:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="S3 not configured")
    try:
        return S3_CLIENT.generate_presigned_url(
            "get_object",
            Params={"Bucket": DOCUMENT_STORE.bucket, "Key": key},
            ExpiresIn=expires_in,
        )
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create download URL") from exc


def upload_identity_document(file: UploadFile) -> str:
    if not S3_CLIENT or not DOCUMENT_STORE:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="S3 not configured")
    if not file.content_type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing file content type")
    if file.content_type not in ALLOWED_ID_PROOF_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file type")

    extension = Path(file.filename or "").suffix.lower()
    key = f"{ID_PROOF_PREFIX}/{uuid.uuid4().hex}{extension}"
    try:
        S3_CLIENT.upload_fileobj(
            file.file,
            DOCUMENT_STORE.bucket,
            key,
            ExtraArgs={"ContentType": file.content_type},
        )
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Upload failed") from exc
    return DOCUMENT_STORE.url_for(key)
