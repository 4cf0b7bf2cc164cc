"""
QR labels for case folders
"""

import base64
import io
import json
import logging
import re
from typing import Any, Dict

import qrcode
from qrcode.constants import ERROR_CORRECT_L

from models.case import Case
from utils.errors import DecodeError

logger = logging.getLogger(__name__)

# Older labels carry the bare case id instead of a JSON payload
_BARE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


def build_payload(case: Case) -> Dict[str, Any]:
    """Snapshot embedded in the label; only id is trusted when scanned back"""
    return {
        "id": case.id,
        "name": case.name,
        "charges": case.charges,
        "prosecutor": case.prosecutor,
        "investigationDeadline": case.investigation_deadline,
        "stage": case.stage.value,
        "notes": case.notes,
        "defendants": [
            {
                "name": d.name,
                "preventiveMeasure": d.preventive_measure.value,
                "detentionDeadline": d.detention_deadline,
            }
            for d in case.defendants
        ],
    }


def encode_payload(case: Case) -> str:
    return json.dumps(build_payload(case), ensure_ascii=False)


def decode_case_id(qr_data: str) -> str:
    """
    Extract the case id from scanned QR text

    Raises:
        DecodeError: if the text is neither a payload with a string id nor a bare id
    """
    text = (qr_data or "").strip()
    if not text:
        raise DecodeError("Empty QR payload")
    if _BARE_ID.match(text):
        return text
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError("QR payload is not valid JSON", {"position": e.pos}) from e
    if not isinstance(payload, dict) or not isinstance(payload.get("id"), str) or not payload["id"]:
        raise DecodeError("QR payload does not contain a case id")
    return payload["id"]


def render_png_base64(data: str, box_size: int = 10) -> str:
    """Render data as a QR code PNG, base64-encoded"""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_L,
        box_size=box_size,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    logger.debug(f"Generated QR code ({len(data)} chars)")
    return base64.b64encode(buffer.getvalue()).decode("utf-8")
