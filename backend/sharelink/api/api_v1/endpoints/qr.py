from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from qrcode.exceptions import DataOverflowError

from sharelink import schemas
from sharelink.api import deps
from sharelink.core.config import Settings
from sharelink.core.errors import ShareNotFound, ValidationError
from sharelink.crud.crud_share import ShareStore
from sharelink.services.download_gate import DownloadGate
from sharelink.utils import qr
from sharelink.utils.format_utils import to_millis

router = APIRouter()


async def _render(data: str, fmt: str, size: int, options: schemas.QRCodeOptions, filename: Optional[str] = None):
    if fmt == "svg":
        svg = await run_in_threadpool(qr.make_svg, data, options.margin, options.error_level)
        return Response(content=svg, media_type="image/svg+xml")

    png_options = dict(
        margin=options.margin,
        dark_color=options.dark_color,
        light_color=options.light_color,
        error_level=options.error_level,
    )
    if fmt == "png":
        png = await run_in_threadpool(lambda: qr.make_png(data, size=size, **png_options))
        headers = {"Content-Disposition": f'inline; filename="{filename}"'} if filename else None
        return Response(content=png, media_type="image/png", headers=headers)

    return await run_in_threadpool(lambda: qr.make_data_url(data, size=size, **png_options))


@router.get("/{slug}")
async def get_share_qr(
    slug: str,
    request: Request,
    format: str = "png",
    size: Optional[int] = None,
    pin: Optional[str] = None,
    settings: Settings = Depends(deps.get_settings),
    gate: DownloadGate = Depends(deps.get_gate),
) -> Any:
    """
    QR code for a share's download URL. A correct PIN is embedded in the URL.
    """
    record = await run_in_threadpool(gate.check_available, slug)

    url_pin = pin if pin and record.has_pin and gate.pin_matches(record, pin) else None
    url = deps.share_url(request, slug, url_pin)
    size = qr.clamp_size(size, settings.QR_DEFAULT_SIZE, settings.QR_MAX_SIZE)

    fmt = format if format in ("svg", "dataurl") else "png"
    rendered = await _render(url, fmt, size, schemas.QRCodeOptions(), filename=f"qr-{slug}.png")
    if isinstance(rendered, Response):
        return rendered
    return schemas.QRDataUrl(qr_code=rendered, url=url, slug=slug).model_dump(by_alias=True, exclude_none=True)


@router.post("/custom")
async def create_custom_qr(
    body: schemas.QRCustomRequest,
    settings: Settings = Depends(deps.get_settings),
) -> Any:
    """
    QR code for arbitrary data.
    """
    if not body.data:
        raise ValidationError("Data is required", code="NO_DATA")

    size = qr.clamp_size(body.size, settings.QR_DEFAULT_SIZE, settings.QR_MAX_SIZE)
    try:
        rendered = await _render(body.data, body.format, size, body.options)
    except DataOverflowError:
        raise ValidationError("Data is too long for a QR code", code="DATA_TOO_LONG") from None
    except ValueError as e:
        raise ValidationError(f"Invalid QR code options: {e}", code="INVALID_QR_OPTIONS") from None
    if isinstance(rendered, Response):
        return rendered
    return schemas.QRDataUrl(qr_code=rendered, data=body.data).model_dump(by_alias=True, exclude_none=True)


@router.get("/{slug}/info", response_model=schemas.QRInfo)
def get_share_qr_info(
    slug: str,
    request: Request,
    settings: Settings = Depends(deps.get_settings),
    store: ShareStore = Depends(deps.get_store),
) -> Any:
    """
    QR code metadata for a share.
    """
    record = store.get(slug)
    if record is None:
        raise ShareNotFound("Share not found")

    return schemas.QRInfo(
        slug=slug,
        url=deps.share_url(request, slug),
        qr_endpoint=f"{deps.base_url(request)}{settings.API_STR}/qr/{slug}",
        available_formats=list(qr.FORMATS),
        has_pin=record.has_pin,
        expires_at=to_millis(record.expires_at),
        files_count=len(record.files),
    )
