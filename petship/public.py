# petship/public.py
from __future__ import annotations

from io import BytesIO

from flask import Blueprint, current_app, send_file

from .services.document_files import load_blob, resolve_signed_token

public = Blueprint("public", __name__)


# =========================================================
# Signed document download (no session needed)
# =========================================================
@public.route("/files/<token>", methods=["GET"])
def download_file(token: str):
    """The token is the credential; it expires after DOCUMENT_URL_MAX_AGE seconds."""
    document = resolve_signed_token(token)
    data = load_blob(document.storage_key)

    current_app.logger.info("Serving document %s via signed link", document.id)
    return send_file(
        BytesIO(data),
        mimetype=document.content_type or "application/octet-stream",
        as_attachment=False,
        download_name=document.name,
        max_age=0,
    )
