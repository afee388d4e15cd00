# routes/uploads.py
from flask import Blueprint, current_app, jsonify, request

bp = Blueprint("uploads", __name__, url_prefix="/api/uploads")


def _service():
    return current_app.extensions["filedrop"]


@bp.post("")
def initiate():
    upload_id = _service().initiate_chunked_upload()
    return jsonify(upload_id=upload_id), 201


@bp.route("/<upload_id>/<int:idx>", methods=["PUT", "POST"])
def upload_chunk(upload_id: str, idx: int):
    chunk_size_max = current_app.config["CHUNK_SIZE_MAX"]
    if request.content_length is not None and request.content_length > chunk_size_max + 1024 * 1024:
        return jsonify(error="chunk-too-large", max_bytes=chunk_size_max), 413

    storage = request.files.get("chunk")
    if storage is not None:
        raw = storage.read()
    else:
        raw = request.get_data(cache=False, as_text=False)
    if not raw:
        return jsonify(error="empty-body"), 400
    if len(raw) > chunk_size_max:
        return jsonify(error="chunk-too-large", max_bytes=chunk_size_max), 413

    written = _service().push_chunk(upload_id, idx, raw)
    return jsonify(ok=True, index=idx, bytes=written)


@bp.get("/<upload_id>")
def status(upload_id: str):
    return jsonify(_service().upload_status(upload_id))


@bp.post("/<upload_id>/complete")
def complete(upload_id: str):
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    try:
        total_chunks = int(data.get("total_chunks", -1))
        size = int(data["size"]) if data.get("size") is not None else None
    except (TypeError, ValueError):
        return jsonify(error="invalid-params"), 400
    if not name or total_chunks < 0:
        return jsonify(error="invalid-params"), 400

    max_file_size = current_app.config["MAX_FILE_SIZE"]
    if size is not None and size > max_file_size:
        return jsonify(error="file-too-large", max_bytes=max_file_size), 413

    descriptor = _service().complete_chunked_upload(
        upload_id,
        name=name,
        size=size,
        mime_type=data.get("type"),
        total_chunks=total_chunks,
        remark=data.get("remark") or "",
    )
    return jsonify(ok=True, file=descriptor.to_api()), 201


@bp.delete("/<upload_id>")
def abandon(upload_id: str):
    _service().abandon_upload(upload_id)
    return jsonify(ok=True)
