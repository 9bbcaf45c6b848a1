from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from . import db
from .dashboard import build_view
from .filters import filter_items, criteria_from, SEARCH_FIELDS
from .models import Document, DOCUMENT_CATEGORY_CHOICES
from .storage import get_file_store, allowed_file
from .time_helpers import now_local
from .utils import to_dict, apply_payload, log, require_admin, api_error, json_body, InvalidPayload

bp = Blueprint("documents", __name__)

FIELDS = ("title", "description", "category")
LINK_FIELDS = FIELDS + ("filename", "original_name", "file_size", "mime_type", "url")
CHOICES = {"category": DOCUMENT_CATEGORY_CHOICES}


def parse_tags(raw):
    """Tags arrive as a list or a comma separated string."""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, (list, tuple)):
        raise InvalidPayload("'tags' must be a list or a comma separated string.", field="tags")
    seen = []
    for t in raw:
        t = str(t).strip()
        if t and t not in seen:
            seen.append(t)
    return seen


def document_to_dict(d):
    out = to_dict(d)
    out["tags"] = list(d.tags or [])
    out["uploaded_by"] = (d.uploaded_by.name or d.uploaded_by.email) if d.uploaded_by else None
    return out


@bp.route("", methods=["GET"], strict_slashes=False)
@login_required
def list_documents():
    items = Document.query.order_by(Document.created_at.desc()).all()
    criteria = criteria_from(request.args)
    if criteria:
        items = filter_items(items, criteria, now_local(), search_fields=SEARCH_FIELDS["documents"])
    return jsonify([document_to_dict(d) for d in items])


@bp.route("/dashboard")
@login_required
def dashboard():
    items = Document.query.order_by(Document.created_at.desc()).all()
    view = build_view("documents", items, criteria_from(request.args), now_local(), serialize=document_to_dict)
    return jsonify(view.to_dict())


@bp.route("/stats")
@login_required
def stats():
    return jsonify(build_view("documents", Document.query.all(), {}, now_local()).stats)


@bp.route("", methods=["POST"], strict_slashes=False)
@login_required
def create_document():
    """Multipart upload (``file`` plus form fields) or JSON linking an existing URL."""
    doc = Document(uploaded_by_id=current_user.id, category="OTHER")
    f = request.files.get("file")
    if f is not None:
        if not f.filename:
            raise InvalidPayload("A file is required.", field="file")
        if not allowed_file(f.filename):
            raise InvalidPayload(f"File type not allowed: {f.filename}", field="file")
        data = f.read()
        form = request.form.to_dict()
        apply_payload(doc, form, FIELDS, choices=CHOICES)
        doc.url = get_file_store().upload(f.filename, data, f.mimetype)
        doc.filename = doc.url.rsplit("/", 1)[-1]
        doc.original_name = f.filename
        doc.file_size = len(data)
        doc.mime_type = f.mimetype
        doc.title = doc.title or f.filename
        doc.tags = parse_tags(form.get("tags"))
        doc.stored = True
    else:
        data = json_body()
        apply_payload(doc, data, LINK_FIELDS, required=("title", "url"), choices=CHOICES)
        doc.original_name = doc.original_name or doc.url.rsplit("/", 1)[-1]
        doc.filename = doc.filename or doc.original_name
        doc.file_size = doc.file_size or 0
        doc.tags = parse_tags(data.get("tags"))
    db.session.add(doc); db.session.commit()
    log("create", "Document", doc.id, details=f"{doc.title} ({doc.file_size} bytes)")
    return jsonify(document_to_dict(doc)), 201


@bp.route("/<int:document_id>", methods=["GET"])
@login_required
def get_document(document_id):
    return jsonify(document_to_dict(Document.query.get_or_404(document_id)))


@bp.route("/<int:document_id>", methods=["PUT"])
@login_required
def update_document(document_id):
    doc = Document.query.get_or_404(document_id)
    data = json_body()
    apply_payload(doc, data, FIELDS, required=("title",), choices=CHOICES)
    if "tags" in data:
        doc.tags = parse_tags(data.get("tags"))
    db.session.commit()
    log("update", "Document", doc.id, details=doc.title)
    return jsonify(document_to_dict(doc))


@bp.route("/<int:document_id>", methods=["DELETE"])
@login_required
def delete_document(document_id):
    doc = Document.query.get_or_404(document_id)
    if doc.uploaded_by_id != current_user.id and not require_admin():
        return api_error(403, "FORBIDDEN", "Only the uploader or an admin can delete a document.")
    if doc.stored:
        get_file_store().delete(doc.url)
    db.session.delete(doc); db.session.commit()
    log("delete", "Document", document_id)
    return jsonify({"ok": True})
