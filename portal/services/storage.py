import os
from flask import current_app
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

MEDIA_ROUTE = "/media"
_URL_SALT = "recording-url"


class StorageError(Exception):
    """Object store call failed."""


class ObjectMissing(StorageError):
    """Key does not exist, or a signed link is invalid or expired."""


def _backend():
    return current_app.config.get('STORAGE_BACKEND', 'local')


def _s3_client():
    # build boto3 client kwargs flexibly: endpoint_url may be empty in AWS-managed S3
    s3_kwargs = {}
    endpoint = current_app.config.get('S3_ENDPOINT')
    if endpoint:
        s3_kwargs['endpoint_url'] = endpoint
    region = current_app.config.get('S3_REGION')
    if region:
        s3_kwargs['region_name'] = region

    s3_config = Config(signature_version='s3v4', s3={'addressing_style': 'virtual'})
    return boto3.client(
        's3',
        aws_access_key_id=current_app.config.get('S3_ACCESS_KEY'),
        aws_secret_access_key=current_app.config.get('S3_SECRET_KEY'),
        config=s3_config,
        **s3_kwargs,
    )


def _bucket():
    bucket = current_app.config.get('S3_BUCKET')
    if not bucket:
        raise StorageError("S3_BUCKET not configured")
    return bucket


def _local_path(key):
    root = os.path.abspath(current_app.config['LOCAL_STORAGE_DIR'])
    path = os.path.abspath(os.path.join(root, key))
    # keys come from our own naming scheme, but never resolve outside the root
    if not path.startswith(root + os.sep):
        raise ObjectMissing(f"invalid key: {key!r}")
    return path


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=_URL_SALT)


def put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
    """Store ``data`` under ``key`` and return the key."""
    if _backend() == 's3':
        try:
            _s3_client().put_object(Bucket=_bucket(), Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 upload failed for {key}: {e}") from e
        current_app.logger.info('[S3 PUT] uploaded %d bytes to %s', len(data), key)
        return key

    path = _local_path(key)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'wb') as f:
            f.write(data)
    except OSError as e:
        raise StorageError(f"local write failed for {key}: {e}") from e
    return key


def object_exists(key: str) -> bool:
    if _backend() == 's3':
        try:
            _s3_client().head_object(Bucket=_bucket(), Key=key)
            return True
        except ClientError as e:
            code = str(e.response.get('Error', {}).get('Code', ''))
            if code in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise StorageError(f"S3 head failed for {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 head failed for {key}: {e}") from e
    try:
        return os.path.isfile(_local_path(key))
    except ObjectMissing:
        return False


def signed_read_url(key: str, expires: int) -> str:
    """Time-limited link to a stored object.

    Raises ``ObjectMissing`` when the key does not exist.
    """
    if not object_exists(key):
        raise ObjectMissing(key)
    if _backend() == 's3':
        try:
            return _s3_client().generate_presigned_url(
                'get_object',
                Params={'Bucket': _bucket(), 'Key': key},
                ExpiresIn=expires,
                HttpMethod='GET',
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"S3 presign failed for {key}: {e}") from e
    token = _serializer().dumps(key)
    return f"{MEDIA_ROUTE}/{token}"


def resolve_signed_token(token: str, max_age: int) -> str:
    """Return the key behind a local signed link; ``ObjectMissing`` if invalid or expired."""
    try:
        key = _serializer().loads(token, max_age=max_age)
    except SignatureExpired as e:
        raise ObjectMissing("link expired") from e
    except BadSignature as e:
        raise ObjectMissing("bad signature") from e
    if not object_exists(key):
        raise ObjectMissing(key)
    return key


def read_bytes(key: str) -> bytes:
    if _backend() == 's3':
        try:
            obj = _s3_client().get_object(Bucket=_bucket(), Key=key)
            return obj['Body'].read()
        except ClientError as e:
            raise ObjectMissing(key) from e
        except BotoCoreError as e:
            raise StorageError(f"S3 read failed for {key}: {e}") from e
    path = _local_path(key)
    try:
        with open(path, 'rb') as f:
            return f.read()
    except FileNotFoundError as e:
        raise ObjectMissing(key) from e
