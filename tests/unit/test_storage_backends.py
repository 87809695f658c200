"""
Tests for the S3 and Cloudinary storage backends.

Vendor SDKs are replaced with mocks; the tests check what we send to
them and how their responses map onto MediaDescriptor.
"""

import hashlib
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import cloudinary.api
import cloudinary.uploader
import pytest

from src.core.media.errors import StorageBackendError
from src.core.media.models import MediaType, StorageBackendKind, UploadedFile
from src.infrastructure.storage.client import (
    MockS3StorageBackend,
    S3Config,
    S3StorageBackend,
    create_bucket_backend,
)
from src.infrastructure.storage.media_service import (
    CloudinaryConfig,
    CloudinaryMediaBackend,
    MockCloudinaryMediaBackend,
    create_media_service_backend,
    resource_to_descriptor,
    sign_upload_request,
)


@pytest.fixture
def s3_config():
    return S3Config(
        access_key_id="AKIA-test",
        secret_access_key="secret",
        bucket_name="memories",
        region="eu-west-1",
    )


@pytest.fixture
def cloudinary_config():
    return CloudinaryConfig(cloud_name="demo", api_key="1234", api_secret="shh")


@pytest.fixture
def png_upload():
    return UploadedFile(original_filename="my photo!!.png", mime_type="image/png", raw_bytes=b"\x89PNG\r\n")


# ---------------------------------------------------------------------------
# S3
# ---------------------------------------------------------------------------

class TestS3Config:

    def test_public_url_aws(self, s3_config):
        assert (
            s3_config.public_url("memories-to-cloud/u1/a.png")
            == "https://memories.s3.eu-west-1.amazonaws.com/memories-to-cloud/u1/a.png"
        )

    def test_public_url_custom_endpoint(self, s3_config):
        s3_config.endpoint_url = "http://localhost:9000/"
        assert s3_config.public_url("k.png") == "http://localhost:9000/memories/k.png"


class TestS3StorageBackend:
    """Tests for S3StorageBackend against a mocked boto3 client."""

    @pytest.mark.asyncio
    async def test_upload_puts_object_under_user_prefix(self, s3_config, png_upload):
        s3 = MagicMock()
        backend = S3StorageBackend(s3_config, s3_client=s3)

        descriptor = await backend.upload_media(png_upload, "u1", "1700000000000_deadbeef_my_photo__.png")

        kwargs = s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "memories"
        assert kwargs["Key"] == "memories-to-cloud/u1/1700000000000_deadbeef_my_photo__.png"
        assert kwargs["Body"] == png_upload.raw_bytes
        assert kwargs["ContentType"] == "image/png"
        assert kwargs["ACL"] == "public-read"
        assert kwargs["Metadata"]["original-name"] == "my%20photo%21%21.png"
        assert kwargs["Metadata"]["file-size"] == str(png_upload.size_bytes)

        assert descriptor.id == kwargs["Key"]
        assert descriptor.original_name == "my photo!!.png"
        assert descriptor.media_type == MediaType.IMAGE
        assert descriptor.format == "png"
        assert descriptor.storage_backend == StorageBackendKind.BUCKET
        assert descriptor.url.endswith("/memories-to-cloud/u1/1700000000000_deadbeef_my_photo__.png")

    @pytest.mark.asyncio
    async def test_upload_without_public_acl(self, s3_config, png_upload):
        s3_config.public_read = False
        s3 = MagicMock()
        backend = S3StorageBackend(s3_config, s3_client=s3)

        await backend.upload_media(png_upload, "u1", "name.png")

        assert "ACL" not in s3.put_object.call_args.kwargs

    @pytest.mark.asyncio
    async def test_upload_failure_wraps_backend_message(self, s3_config, png_upload):
        s3 = MagicMock()
        s3.put_object.side_effect = RuntimeError("AccessDenied: bucket policy")
        backend = S3StorageBackend(s3_config, s3_client=s3)

        with pytest.raises(StorageBackendError) as exc_info:
            await backend.upload_media(png_upload, "u1", "name.png")

        assert exc_info.value.status_code == 500
        assert exc_info.value.details == "AccessDenied: bucket policy"

    @pytest.mark.asyncio
    async def test_list_maps_objects(self, s3_config):
        modified = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
        s3 = MagicMock()
        s3.list_objects_v2.return_value = {
            "Contents": [
                {"Key": "memories-to-cloud/u1/1_a_beach.JPG", "Size": 2048, "LastModified": modified},
                {"Key": "memories-to-cloud/u1/2_b_clip.mov", "Size": 4096, "LastModified": modified},
                {"Key": "memories-to-cloud/u1/3_c_notes.txt", "Size": 1, "LastModified": modified},
                {"Key": "memories-to-cloud/u1/", "Size": 0, "LastModified": modified},
            ]
        }
        backend = S3StorageBackend(s3_config, s3_client=s3)

        descriptors = await backend.list_media("u1")

        s3.list_objects_v2.assert_called_once_with(
            Bucket="memories", Prefix="memories-to-cloud/u1/", MaxKeys=1000
        )
        assert [d.media_type for d in descriptors] == [MediaType.IMAGE, MediaType.VIDEO, MediaType.UNKNOWN]
        first = descriptors[0]
        assert first.original_name == "1_a_beach.JPG"
        assert first.format == "jpg"
        assert first.size_bytes == 2048
        assert first.upload_timestamp == modified

    @pytest.mark.asyncio
    async def test_list_empty_prefix(self, s3_config):
        s3 = MagicMock()
        s3.list_objects_v2.return_value = {"KeyCount": 0}
        backend = S3StorageBackend(s3_config, s3_client=s3)

        assert await backend.list_media("nobody") == []

    @pytest.mark.asyncio
    async def test_list_failure_raises_backend_error(self, s3_config):
        s3 = MagicMock()
        s3.list_objects_v2.side_effect = RuntimeError("NoSuchBucket")
        backend = S3StorageBackend(s3_config, s3_client=s3)

        with pytest.raises(StorageBackendError, match="S3"):
            await backend.list_media("u1")


class TestMockS3StorageBackend:

    @pytest.mark.asyncio
    async def test_upload_then_list_is_scoped_per_user(self, png_upload):
        backend = MockS3StorageBackend()

        await backend.upload_media(png_upload, "u1", "1_a_photo.png")
        await backend.upload_media(png_upload, "u2", "2_b_photo.png")

        listed = await backend.list_media("u1")
        assert [d.id for d in listed] == ["memories-to-cloud/u1/1_a_photo.png"]

    def test_factory(self, s3_config):
        assert isinstance(create_bucket_backend(mock_mode=True), MockS3StorageBackend)
        with pytest.raises(ValueError):
            create_bucket_backend()


# ---------------------------------------------------------------------------
# Cloudinary
# ---------------------------------------------------------------------------

CLOUDINARY_IMAGE = {
    "public_id": "photo-uploader/u1/1700000000000_deadbeef_beach",
    "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/photo-uploader/u1/beach.jpg",
    "bytes": 5120,
    "resource_type": "image",
    "created_at": "2024-05-02T10:00:00Z",
    "format": "jpg",
}


class TestResourceMapping:

    def test_maps_created_at_and_type(self):
        descriptor = resource_to_descriptor(CLOUDINARY_IMAGE)

        assert descriptor.id == CLOUDINARY_IMAGE["public_id"]
        assert descriptor.media_type == MediaType.IMAGE
        assert descriptor.upload_timestamp == datetime(2024, 5, 2, 10, 0, tzinfo=timezone.utc)
        assert descriptor.storage_backend == StorageBackendKind.MEDIA_SERVICE
        assert descriptor.original_name == "1700000000000_deadbeef_beach"

    def test_prefers_filename_fields(self):
        resource = dict(CLOUDINARY_IMAGE, filename="beach", display_name="Beach")
        assert resource_to_descriptor(resource).original_name == "beach"

    def test_requested_type_used_when_resource_has_none(self):
        resource = {k: v for k, v in CLOUDINARY_IMAGE.items() if k != "resource_type"}
        assert resource_to_descriptor(resource, "video").media_type == MediaType.VIDEO


class TestCloudinaryMediaBackend:
    """Tests for CloudinaryMediaBackend with the SDK patched out."""

    @pytest.mark.asyncio
    async def test_upload_sends_folder_public_id_and_credentials(self, cloudinary_config, png_upload):
        backend = CloudinaryMediaBackend(cloudinary_config)
        result = dict(CLOUDINARY_IMAGE, format="png", bytes=png_upload.size_bytes)

        with patch.object(cloudinary.uploader, "upload", return_value=result) as upload:
            descriptor = await backend.upload_media(png_upload, "u1", "1700000000000_deadbeef_my_photo__.png")

        kwargs = upload.call_args.kwargs
        assert upload.call_args.args[0].read() == png_upload.raw_bytes
        assert kwargs["folder"] == "photo-uploader/u1"
        assert kwargs["public_id"] == "1700000000000_deadbeef_my_photo__"
        assert kwargs["resource_type"] == "auto"
        assert kwargs["cloud_name"] == "demo"
        assert kwargs["api_key"] == "1234"
        assert kwargs["api_secret"] == "shh"

        assert descriptor.original_name == "my photo!!.png"
        assert descriptor.url == CLOUDINARY_IMAGE["secure_url"]
        assert descriptor.storage_backend == StorageBackendKind.MEDIA_SERVICE

    @pytest.mark.asyncio
    async def test_upload_failure_wraps_backend_message(self, cloudinary_config, png_upload):
        backend = CloudinaryMediaBackend(cloudinary_config)

        with patch.object(cloudinary.uploader, "upload", side_effect=Exception("Invalid API key")):
            with pytest.raises(StorageBackendError) as exc_info:
                await backend.upload_media(png_upload, "u1", "x.png")

        assert exc_info.value.details == "Invalid API key"

    @pytest.mark.asyncio
    async def test_list_queries_images_and_videos(self, cloudinary_config):
        backend = CloudinaryMediaBackend(cloudinary_config)
        video = {
            "public_id": "photo-uploader/u1/clip",
            "secure_url": "https://res.cloudinary.com/demo/video/upload/clip.mp4",
            "bytes": 9000,
            "created_at": "2024-05-03T10:00:00Z",
            "format": "mp4",
        }

        def resources(**kwargs):
            if kwargs["resource_type"] == "image":
                return {"resources": [CLOUDINARY_IMAGE]}
            return {"resources": [video]}

        with patch.object(cloudinary.api, "resources", side_effect=resources) as api:
            descriptors = await backend.list_media("u1")

        assert [call.kwargs["resource_type"] for call in api.call_args_list] == ["image", "video"]
        first_call = api.call_args_list[0].kwargs
        assert first_call["type"] == "upload"
        assert first_call["prefix"] == "photo-uploader/u1"
        assert first_call["max_results"] == 100
        assert [d.media_type for d in descriptors] == [MediaType.IMAGE, MediaType.VIDEO]

    @pytest.mark.asyncio
    async def test_list_failure_raises_backend_error(self, cloudinary_config):
        backend = CloudinaryMediaBackend(cloudinary_config)

        with patch.object(cloudinary.api, "resources", side_effect=Exception("Rate Limit Exceeded")):
            with pytest.raises(StorageBackendError) as exc_info:
                await backend.list_media("u1")

        assert exc_info.value.details == "Rate Limit Exceeded"


class TestSignUploadRequest:

    def test_signature_is_sha1_of_params_and_secret(self, cloudinary_config):
        signed = sign_upload_request(cloudinary_config, timestamp=1700000000)

        expected = hashlib.sha1(b"timestamp=1700000000shh").hexdigest()
        assert signed.signature == expected
        assert signed.timestamp == 1700000000
        assert signed.cloud_name == "demo"
        assert signed.api_key == "1234"

    def test_fresh_timestamp_by_default(self, cloudinary_config):
        before = int(datetime.now(timezone.utc).timestamp())
        signed = sign_upload_request(cloudinary_config)
        assert signed.timestamp >= before


class TestMockCloudinaryMediaBackend:

    @pytest.mark.asyncio
    async def test_upload_then_list(self, png_upload):
        backend = MockCloudinaryMediaBackend()

        uploaded = await backend.upload_media(png_upload, "u1", "1_a_my_photo__.png")
        listed = await backend.list_media("u1")

        assert uploaded.original_name == "my photo!!.png"
        assert [d.id for d in listed] == ["photo-uploader/u1/1_a_my_photo__"]
        assert await backend.list_media("u2") == []

    def test_factory(self, cloudinary_config):
        assert isinstance(create_media_service_backend(mock_mode=True), MockCloudinaryMediaBackend)
        assert isinstance(create_media_service_backend(cloudinary_config), CloudinaryMediaBackend)
        with pytest.raises(ValueError):
            create_media_service_backend()
