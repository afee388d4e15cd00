# routes/files.py
from flask import Blueprint, current_app, jsonify, request, send_file

bp = Blueprint("files", __name__, url_prefix="/api")


def _service():
    return current_app.extensions["filedrop"]


@bp.get("/files")
def list_files():
    return jsonify(files=[d.to_api() for d in _service().list_files()])


@bp.post("/files")
def upload_files():
    """Single-shot upload of one or more multipart ``files`` sharing one remark."""
    files = request.files.getlist("files") or request.files.getlist("file")
    if not files:
        return jsonify(error="no-files"), 400
    remark = request.form.get("remark", "")

    stored = []
    for storage in files:
        descriptor = _service().upload(storage.stream, storage.filename or "", storage.mimetype, remark)
        stored.append(descriptor.to_api())
    return jsonify(ok=True, files=stored), 201


@bp.get("/files/<file_id>")
def get_file(file_id: str):
    return jsonify(_service().get_file(file_id).to_api())


@bp.patch("/files/<file_id>")
def update_file(file_id: str):
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    remark = data.get("remark")
    if name is None and remark is None:
        return jsonify(error="invalid-params"), 400
    if name is not None and not str(name).strip():
        return jsonify(error="invalid-params", details="name must not be empty"), 400

    descriptor = _service().update_file(
        file_id,
        name=str(name) if name is not None else None,
        remark=str(remark) if remark is not None else None,
    )
    return jsonify(descriptor.to_api())


@bp.delete("/files/<file_id>")
def delete_file(file_id: str):
    _service().delete(file_id)
    return jsonify(ok=True)


@bp.post("/files/delete")
def delete_files():
    data = request.get_json(silent=True) or {}
    ids = data.get("ids")
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        return jsonify(error="invalid-params"), 400
    count = _service().delete_many(ids)
    return jsonify(ok=True, count=count)


@bp.get("/download/<file_id>")
def download(file_id: str):
    descriptor, stream = _service().open_download(file_id)
    resp = send_file(
        stream,
        mimetype=descriptor.type or "application/octet-stream",
        as_attachment=True,
        download_name=descriptor.name,
        etag=False,
    )
    resp.content_length = descriptor.size
    return resp
