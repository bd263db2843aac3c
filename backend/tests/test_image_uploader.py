"""Tests for the image upload client."""

import httpx
import pytest

from pricetrack.services.image_uploader import ImageUploader, UploadStatus

FUNC_URL = "https://func.example.net/api/ImageToS3?code=abc&destination=s3://bucket/&id="
IMAGE = "https://a.fsimg.co.nz/product/retail/fan/image/master/5022829.png"


def make_uploader(settings, reply=None, error=None):
    settings.image_upload_url = FUNC_URL
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if error is not None:
            raise error(f"cannot reach {request.url.host}", request=request)
        return httpx.Response(200, text=reply)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ImageUploader(settings, client=client), requests


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply, expected",
    [
        ("S3 Upload of Full-Size and Thumbnail WebPs", UploadStatus.UPLOADED),
        ("Image P5022829 already exists", UploadStatus.ALREADY_EXISTS),
        ("Image is greyscale, skipping", UploadStatus.GREYSCALE),
        ("Internal error", UploadStatus.FAILED),
    ],
)
async def test_upload_responses(settings, reply, expected):
    uploader, requests = make_uploader(settings, reply=reply)
    try:
        status = await uploader.upload(IMAGE, "P5022829", "Anchor Blue Milk Powder 1kg")
    finally:
        await uploader.close()

    assert status is expected
    assert len(requests) == 1
    assert "id=P5022829" in str(requests[0].url)
    assert "source=" in str(requests[0].url)


@pytest.mark.asyncio
async def test_transport_error(settings):
    uploader, _ = make_uploader(settings, error=httpx.ConnectError)
    try:
        assert await uploader.upload(IMAGE, "P5022829", "Milk") is UploadStatus.FAILED
    finally:
        await uploader.close()


@pytest.mark.asyncio
async def test_not_configured(settings):
    uploader = ImageUploader(settings)
    assert await uploader.upload(IMAGE, "P5022829", "Milk") is UploadStatus.SKIPPED


@pytest.mark.asyncio
async def test_invalid_function_url(settings):
    settings.image_upload_url = "ftp://func.example.net/"
    uploader = ImageUploader(settings)
    assert await uploader.upload(IMAGE, "P5022829", "Milk") is UploadStatus.FAILED
