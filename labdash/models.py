from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from . import db, login_manager


EQUIPMENT_STATUS_CHOICES = ("ACTIVE", "INACTIVE", "IN_SERVICE", "OUT_OF_ORDER", "DECOMMISSIONED")
EQUIPMENT_CONDITION_CHOICES = ("EXCELLENT", "GOOD", "FAIR", "POOR", "NEEDS_REPAIR")

EQUIPMENT_LOCATIONS = (
    "Lab B153 (B Block)",
    "Lab 102 (B Block)",
    "Lab 104 (B Block)",
    "Lab FC04 (D Block)",
    "Lab B258 - Gynecology and Obstetrics Lab (B Block)",
    # imported from the spreadsheet inventory
    "B102",
    "B103",
    "GC-1",
    "B102 & GC-1",
    "B102 &GC-1",
    "B102 / B103 / GC-1",
    # legacy, kept for old rows
    "Lab 1",
    "Lab 2",
    "Lab 3",
    "Lab 4",
    "Lab 5",
    "Lab 6",
)

EQUIPMENT_TYPES = (
    "Monitor",
    "Simulator",
    "Diagnostic Tool",
    "Mannequin",
    "Jump Bag",
    "Defibrillator",
    "Ventilator",
    "IV Pump",
    "Stretcher",
    "Oxygen Equipment",
    "Other",
)

# group id -> equipment types shown under it
EQUIPMENT_CATEGORIES = {
    "monitors": ("Monitor",),
    "simulators": ("Simulator",),
    "mannequins": ("Mannequin",),
    "emergency": ("Defibrillator", "Jump Bag"),
    "life-support": ("Ventilator", "IV Pump", "Oxygen Equipment"),
    "transport": ("Stretcher",),
}

MAINTENANCE_TYPE_CHOICES = (
    "PREVENTIVE", "CORRECTIVE", "CALIBRATION", "INSPECTION", "CLEANING",
    "REPAIR", "REPLACEMENT", "UPGRADE", "EMERGENCY",
)
MAINTENANCE_STATUS_CHOICES = ("SCHEDULED", "IN_PROGRESS", "COMPLETED", "OVERDUE", "CANCELLED")

CONSUMABLE_CATEGORIES = (
    "Bandages & Dressings",
    "IV Supplies",
    "Medications",
    "Diagnostic Supplies",
    "Airway Management",
    "Cardiac Supplies",
    "Trauma Supplies",
    "Infection Control",
    "Miscellaneous",
)

RESERVATION_STATUS_CHOICES = ("PENDING", "CONFIRMED", "IN_PROGRESS", "COMPLETED", "CANCELLED", "OVERDUE")
CHECK_TYPE_CHOICES = ("CHECK_OUT", "CHECK_IN")

PROCUREMENT_PRIORITY_CHOICES = ("LOW", "MEDIUM", "HIGH", "URGENT")
PROCUREMENT_STATUS_CHOICES = (
    "SUBMITTED", "UNDER_REVIEW", "APPROVED", "REJECTED",
    "ORDERED", "RECEIVED", "COMPLETED", "CANCELLED",
)
PROCUREMENT_CATEGORIES = (
    "Medical Equipment",
    "Training Equipment",
    "Consumables",
    "Technology",
    "Furniture",
    "Maintenance Supplies",
    "Safety Equipment",
    "Other",
)

DOCUMENT_CATEGORY_CHOICES = (
    "INVOICE", "RECEIPT", "MANUAL", "WARRANTY", "SERVICE_RECORD",
    "CERTIFICATE", "POLICY", "PROCEDURE", "TRAINING", "OTHER",
)
DOCUMENT_TAGS = (
    "Equipment", "Maintenance", "Procurement", "Training", "Safety",
    "Compliance", "Financial", "Technical", "Administrative",
)

USER_ROLE_CHOICES = ("USER", "ADMIN")


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False)
    name = db.Column(db.String(120))
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default="USER")

    @classmethod
    def create_user(cls, email, password, name=None, role="USER"):
        u = cls(email=email.strip().lower(), name=name, password_hash=generate_password_hash(password), role=role)
        db.session.add(u); db.session.commit(); return u

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.email}>"


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


class ContactPerson(TimestampMixin, db.Model):
    __tablename__ = "contact_person"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(120))
    company = db.Column(db.String(200))
    email = db.Column(db.String(200))
    phone = db.Column(db.String(60))
    address = db.Column(db.String(255))
    notes = db.Column(db.Text)

    equipment = db.relationship("Equipment", backref="contact_person", lazy=True)


class Manufacturer(TimestampMixin, db.Model):
    __tablename__ = "manufacturer"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), unique=True, nullable=False)
    website = db.Column(db.String(255))
    email = db.Column(db.String(200))
    phone = db.Column(db.String(60))
    address = db.Column(db.String(255))
    support_email = db.Column(db.String(200))
    support_phone = db.Column(db.String(60))
    notes = db.Column(db.Text)

    equipment = db.relationship("Equipment", backref="manufacturer_details", lazy=True)


class Equipment(TimestampMixin, db.Model):
    __tablename__ = "equipment"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(60), nullable=False, index=True)
    description = db.Column(db.Text)
    location = db.Column(db.String(120), nullable=False, index=True)
    manufacturer = db.Column(db.String(200))
    serial_number = db.Column(db.String(120), index=True)
    model_number = db.Column(db.String(120))
    acquisition_date = db.Column(db.Date)
    last_maintenance_date = db.Column(db.Date)
    next_maintenance_date = db.Column(db.Date)
    maintenance_interval = db.Column(db.Integer)  # days
    warranty_expiration = db.Column(db.Date)
    status = db.Column(db.String(20), default="ACTIVE", index=True)
    condition = db.Column(db.String(20), default="GOOD")
    notes = db.Column(db.Text)
    contact_person_id = db.Column(db.Integer, db.ForeignKey("contact_person.id"), nullable=True)
    manufacturer_id = db.Column(db.Integer, db.ForeignKey("manufacturer.id"), nullable=True)

    images = db.relationship("EquipmentImage", backref="equipment", cascade="all, delete-orphan", lazy=True)
    maintenance_records = db.relationship("MaintenanceRecord", backref="equipment", cascade="all, delete-orphan", lazy=True)
    reservations = db.relationship("Reservation", backref="equipment", cascade="all, delete-orphan", lazy=True)

    def primary_image(self):
        for img in self.images:
            if img.is_primary:
                return img
        return self.images[0] if self.images else None

    def __repr__(self):
        return f"<Equipment {self.id} {self.name!r}>"


class EquipmentImage(db.Model):
    __tablename__ = "equipment_image"
    id = db.Column(db.Integer, primary_key=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(500), nullable=False)
    size = db.Column(db.Integer)
    mime_type = db.Column(db.String(100))
    description = db.Column(db.String(255))
    is_primary = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class MaintenanceRecord(TimestampMixin, db.Model):
    __tablename__ = "maintenance_record"
    id = db.Column(db.Integer, primary_key=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text, nullable=False)
    performed_date = db.Column(db.Date, nullable=False)
    performed_by = db.Column(db.String(120))
    cost = db.Column(db.Float)
    notes = db.Column(db.Text)
    next_due_date = db.Column(db.Date)
    status = db.Column(db.String(20), default="SCHEDULED", index=True)
    document_url = db.Column(db.String(500))


class Consumable(TimestampMixin, db.Model):
    __tablename__ = "consumable"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(60), nullable=False, index=True)
    unit = db.Column(db.String(40), nullable=False)
    current_stock = db.Column(db.Integer, default=0, nullable=False)
    minimum_stock = db.Column(db.Integer, default=0, nullable=False)
    maximum_stock = db.Column(db.Integer)
    unit_cost = db.Column(db.Float)
    total_value = db.Column(db.Float)
    supplier = db.Column(db.String(200))
    location = db.Column(db.String(120))
    expiry_date = db.Column(db.Date)
    batch_number = db.Column(db.String(120))
    notes = db.Column(db.Text)

    def refresh_total_value(self):
        if self.unit_cost is not None and self.current_stock is not None:
            self.total_value = round(self.current_stock * self.unit_cost, 2)


class Reservation(TimestampMixin, db.Model):
    __tablename__ = "reservation"
    id = db.Column(db.Integer, primary_key=True)
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    actual_start_date = db.Column(db.DateTime)
    actual_end_date = db.Column(db.DateTime)
    status = db.Column(db.String(20), default="PENDING", index=True)
    purpose = db.Column(db.String(255))
    notes = db.Column(db.Text)

    user = db.relationship("User", backref=db.backref("reservations", lazy="dynamic"))
    check_in_out = db.relationship("CheckInOut", backref="reservation", cascade="all, delete-orphan",
                                   order_by="CheckInOut.id", lazy=True)


class CheckInOut(db.Model):
    __tablename__ = "check_in_out"
    id = db.Column(db.Integer, primary_key=True)
    reservation_id = db.Column(db.Integer, db.ForeignKey("reservation.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    type = db.Column(db.String(20), nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    condition = db.Column(db.String(20))
    notes = db.Column(db.Text)
    images = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class ProcurementRequest(TimestampMixin, db.Model):
    __tablename__ = "procurement_request"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(60), nullable=False, index=True)
    priority = db.Column(db.String(10), default="MEDIUM", index=True)
    status = db.Column(db.String(20), default="SUBMITTED", index=True)
    estimated_cost = db.Column(db.Float)
    actual_cost = db.Column(db.Float)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    justification = db.Column(db.Text)
    supplier = db.Column(db.String(200))
    order_number = db.Column(db.String(120))
    expected_delivery = db.Column(db.Date)
    actual_delivery = db.Column(db.Date)
    notes = db.Column(db.Text)
    requested_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    equipment_id = db.Column(db.Integer, db.ForeignKey("equipment.id"), nullable=True)

    requested_by = db.relationship("User")
    wish_list_items = db.relationship("WishListItem", backref="procurement_request", lazy=True)


class WishList(TimestampMixin, db.Model):
    __tablename__ = "wish_list"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    items = db.relationship("WishListItem", backref="wish_list", cascade="all, delete-orphan", lazy=True)


class WishListItem(TimestampMixin, db.Model):
    __tablename__ = "wish_list_item"
    id = db.Column(db.Integer, primary_key=True)
    wish_list_id = db.Column(db.Integer, db.ForeignKey("wish_list.id"), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(60), nullable=False)
    priority = db.Column(db.String(10), default="MEDIUM")
    estimated_cost = db.Column(db.Float)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    notes = db.Column(db.Text)
    procurement_request_id = db.Column(db.Integer, db.ForeignKey("procurement_request.id"), nullable=True)


class ConsumableWishList(TimestampMixin, db.Model):
    __tablename__ = "consumable_wish_list"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, default=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    items = db.relationship("ConsumableWishListItem", backref="wish_list", cascade="all, delete-orphan", lazy=True)


class ConsumableWishListItem(TimestampMixin, db.Model):
    __tablename__ = "consumable_wish_list_item"
    id = db.Column(db.Integer, primary_key=True)
    wish_list_id = db.Column(db.Integer, db.ForeignKey("consumable_wish_list.id"), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(60), nullable=False)
    quantity = db.Column(db.Integer, default=1, nullable=False)
    unit = db.Column(db.String(40), nullable=False)
    estimated_cost = db.Column(db.Float)
    priority = db.Column(db.String(10), default="MEDIUM")
    notes = db.Column(db.Text)
    consumable_id = db.Column(db.Integer, db.ForeignKey("consumable.id"), nullable=True)


class Document(TimestampMixin, db.Model):
    __tablename__ = "document"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, default=0, nullable=False)
    mime_type = db.Column(db.String(100))
    url = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(20), default="OTHER", index=True)
    tags = db.Column(db.JSON, default=list)
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    stored = db.Column(db.Boolean, default=False, nullable=False)  # bytes live in the FileStore

    uploaded_by = db.relationship("User")


ALERT_KIND_CHOICES = ("maintenance", "stock", "expiry")


class Alert(db.Model):
    __tablename__ = "alerts"
    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    kind = db.Column(db.String(20), default="maintenance")  # maintenance | stock | expiry
    entity = db.Column(db.String(40), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    message = db.Column(db.String(255), nullable=False)
    resolved = db.Column(db.Boolean, default=False)
    resolved_at = db.Column(db.DateTime, nullable=True)


class ChangeLog(db.Model):
    __tablename__ = "changelog"
    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    username = db.Column(db.String(200))
    action = db.Column(db.String(50))
    entity = db.Column(db.String(50))
    entity_id = db.Column(db.Integer)
    details = db.Column(db.Text)
