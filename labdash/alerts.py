import logging
from datetime import datetime

from flask import Blueprint, request, jsonify
from flask_login import login_required

from . import db
from .models import Alert, Equipment, Consumable, ALERT_KIND_CHOICES
from .status import is_maintenance_overdue, is_low_stock, is_expired, days_until
from .time_helpers import now_local
from .utils import to_dict, log, require_admin, api_error

logger = logging.getLogger(__name__)

bp = Blueprint("alerts", __name__)


def _sync_alert(kind, entity, entity_id, needed, message):
    """Open an alert when ``needed`` and none is open; resolve the open one otherwise.

    Returns 1 if an alert was opened, -1 if one was resolved, 0 otherwise.
    """
    open_alert = Alert.query.filter_by(entity=entity, entity_id=entity_id, kind=kind, resolved=False).first()
    if needed:
        if open_alert is None:
            db.session.add(Alert(kind=kind, entity=entity, entity_id=entity_id, message=message[:255]))
            return 1
        return 0
    if open_alert is not None:
        open_alert.resolved = True
        open_alert.resolved_at = datetime.now()
        return -1
    return 0


def run_alert_sweep(now):
    """Reconcile open alerts with the current equipment and stock state.

    One alert per (kind, entity) stays open while the condition holds and is
    resolved on the first sweep after it clears.
    """
    opened = resolved = 0

    for eq in Equipment.query.all():
        overdue = is_maintenance_overdue(now, eq)
        msg = ""
        if overdue:
            msg = f"{eq.name}: maintenance {abs(days_until(eq.next_maintenance_date, now))} days overdue (due {eq.next_maintenance_date})."
        r = _sync_alert("maintenance", "Equipment", eq.id, overdue, msg)
        opened += r == 1
        resolved += r == -1

    for c in Consumable.query.all():
        low = is_low_stock(c)
        msg = f"{c.name}: stock {c.current_stock} {c.unit} at or below minimum {c.minimum_stock}." if low else ""
        r = _sync_alert("stock", "Consumable", c.id, low, msg)
        opened += r == 1
        resolved += r == -1

        expired = is_expired(now, c)
        msg = f"{c.name}: batch {c.batch_number or '-'} expired on {c.expiry_date}." if expired else ""
        r = _sync_alert("expiry", "Consumable", c.id, expired, msg)
        opened += r == 1
        resolved += r == -1

    db.session.commit()
    logger.info("Alert sweep at %s: %d opened, %d resolved", now.isoformat(), opened, resolved)
    return {"opened": int(opened), "resolved": int(resolved)}


@bp.route("", methods=["GET"], strict_slashes=False)
@login_required
def list_alerts():
    q = Alert.query.order_by(Alert.created_at.desc())
    state = request.args.get("state", "open")
    if state == "open":
        q = q.filter_by(resolved=False)
    elif state == "resolved":
        q = q.filter_by(resolved=True)
    kind = request.args.get("kind")
    if kind in ALERT_KIND_CHOICES:
        q = q.filter_by(kind=kind)
    return jsonify([to_dict(a) for a in q.all()])


@bp.route("/<int:alert_id>/resolve", methods=["POST"])
@login_required
def resolve_alert(alert_id):
    a = Alert.query.get_or_404(alert_id)
    if not a.resolved:
        a.resolved = True
        a.resolved_at = datetime.now()
        db.session.commit()
        log("resolve", "Alert", a.id, details=a.message)
    return jsonify(to_dict(a))


@bp.route("/sweep", methods=["POST"])
@login_required
def sweep():
    if not require_admin():
        return api_error(403, "FORBIDDEN", "Only admins can run the alert sweep.")
    return jsonify(run_alert_sweep(now_local()))
